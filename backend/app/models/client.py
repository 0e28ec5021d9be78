"""
Client database model.

A client owns work transactions and carries the denormalized ledger balance.
"""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Client(Base):
    """
    Client model.

    `balance` is a cache of the sum of the client's work contributions
    (total_price - paid_amount) in minor units. Positive means the client owes
    the business, negative means the business owes the client.

    Only the balance projection engine and reconciliation write `balance`.
    Every such write bumps `version`, which SQLAlchemy checks on UPDATE so a
    concurrent writer fails with StaleDataError instead of losing an update.
    """
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identity / contact details (not ledger relevant)
    name = Column(String(100), nullable=False, index=True)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    address = Column(String(500), nullable=False)
    pan_number = Column(String(10), nullable=True)
    usual_work_types = Column(JSON, nullable=False, default=list)

    # Ledger
    balance = Column(BigInteger, nullable=False, default=0, index=True)
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # History rows keep referring to a deleted client id, so ids are never reused
    __table_args__ = {"sqlite_autoincrement": True}
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', balance={self.balance}, version={self.version})>"
