"""
Work Transaction database model.

A billable piece of work and what has been paid against it.
"""

from sqlalchemy import Column, Integer, BigInteger, String, Date, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import PaymentStatus


class WorkTransaction(Base):
    """
    Work transaction model.

    Amounts are integers in minor units. The row contributes
    (total_price - paid_amount) to its client's balance; overpayment gives a
    negative contribution (credit). payment_status is derived from the
    amounts and stored only so it can be filtered on.
    """
    __tablename__ = "work_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - Work belongs to one Client
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)

    # Financials
    total_price = Column(BigInteger, nullable=False)
    paid_amount = Column(BigInteger, nullable=False, default=0)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True
    )

    # Details
    work_types = Column(JSON, nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(500), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # History rows keep referring to a deleted work id, so ids are never reused
    __table_args__ = {"sqlite_autoincrement": True}

    @property
    def balance_contribution(self) -> int:
        return self.total_price - self.paid_amount

    def snapshot(self) -> dict:
        """Copy of the ledger-relevant fields for the balance history."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "total_price": self.total_price,
            "paid_amount": self.paid_amount,
            "payment_status": PaymentStatus(self.payment_status).value,
            "work_types": list(self.work_types or []),
            "transaction_date": self.transaction_date.isoformat() if self.transaction_date else None,
            "description": self.description,
        }

    def __repr__(self):
        return f"<WorkTransaction(id={self.id}, client_id={self.client_id}, total={self.total_price}, paid={self.paid_amount})>"
