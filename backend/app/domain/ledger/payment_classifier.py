"""
Payment classification for work transactions.

Pure functions, no I/O. Negative amounts are rejected by input validation
before they get here.
"""

from backend.app.models.ledger_enums import PaymentStatus


def classify_payment(total_price: int, paid_amount: int) -> PaymentStatus:
    """
    Map a (price, paid) pair to its payment status.

    Overpayment still counts as paid; a zero-priced work with nothing paid is
    unpaid.
    """
    if paid_amount <= 0:
        return PaymentStatus.UNPAID
    if paid_amount >= total_price:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def balance_contribution(total_price: int, paid_amount: int) -> int:
    """Signed effect of one work transaction on its client's balance."""
    return total_price - paid_amount
