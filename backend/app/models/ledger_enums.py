"""
Ledger enumerations.
"""

import enum


class PaymentStatus(str, enum.Enum):
    """Payment state of a single work transaction."""
    PAID = "paid"  # Paid in full (or overpaid)
    PARTIAL = "partial"  # Something paid, something still due
    UNPAID = "unpaid"  # Nothing paid yet


class WorkType(str, enum.Enum):
    """Service categories a work transaction can be tagged with."""
    ONLINE_WORK = "online-work"
    HEALTH_INSURANCE = "health-insurance"
    LIFE_INSURANCE = "life-insurance"
    INCOME_TAX = "income-tax"
    P_TAX = "p-tax"
    MUTUAL_FUNDS = "mutual-funds"
    OTHERS = "others"


class BalanceChangeType(str, enum.Enum):
    """
    Reason a balance history entry was written.

    work_* entries come from the transaction store, manual_adjustment from an
    operator, balance_correction from reconciliation.
    """
    WORK_CREATED = "work_created"
    WORK_UPDATED = "work_updated"
    WORK_DELETED = "work_deleted"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    BALANCE_CORRECTION = "balance_correction"


class BalanceType(str, enum.Enum):
    """Client list filter on the sign of the balance."""
    POSITIVE = "positive"  # Client owes the business
    NEGATIVE = "negative"  # Business owes the client (credit)
    ZERO = "zero"  # Settled
