"""
Balance History database model.

Append-only trail of every change to a client's balance.
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, Enum, Index
from backend.app.db.session import Base
from backend.app.models.ledger_enums import BalanceChangeType


class BalanceHistoryEntry(Base):
    """
    Balance History Entry model.

    Immutable record of one balance change:
    new_balance = previous_balance + balance_change.
    NO updates or deletions allowed.

    client_id and work_id are plain references, not foreign keys: the trail
    outlives a deleted work transaction and a deleted client. work_snapshot
    keeps the work's fields as they were when the change happened.
    """
    __tablename__ = "balance_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    client_id = Column(Integer, nullable=False, index=True)
    work_id = Column(Integer, nullable=True, index=True)

    # Change details
    change_type = Column(
        Enum(BalanceChangeType, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    previous_balance = Column(BigInteger, nullable=False)
    balance_change = Column(BigInteger, nullable=False)
    new_balance = Column(BigInteger, nullable=False)
    description = Column(String(500), nullable=False)
    work_snapshot = Column(JSON, nullable=True)

    # Timestamps (Immutable - no updated_at). Set by the writer under the
    # client lock so it never goes backwards for a client.
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_balance_history_client_created', 'client_id', 'created_at'),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self):
        return (
            f"<BalanceHistoryEntry(id={self.id}, client_id={self.client_id}, "
            f"type='{BalanceChangeType(self.change_type).value}', change={self.balance_change})>"
        )
