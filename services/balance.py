# services/balance.py
"""
Balance engine: pure money arithmetic for contributions and debts.

Nothing here touches the database. The ledger service calls these inside its
atomic units, so a raised error aborts the whole unit.
"""
from typing import Tuple

from core.exceptions import (
    AlreadyPaid,
    AlreadySettled,
    AmountExceedsBalance,
    DebtAlreadyPaid,
    InvalidAmount,
    PartialPaymentsDisabled,
)
from models.models import ContributionStatus, DebtStatus

MONEY_PLACES = 2


def money(value) -> float:
    """Normalize an amount to two decimals."""
    return round(float(value), MONEY_PLACES)


# ============================================================
# CONTRIBUTIONS
# ============================================================
def remaining(contribution) -> float:
    return money(contribution.amount - contribution.amount_paid)


def validate_full_payment(contribution, amount) -> float:
    """
    A full payment must settle exactly what is left.
    Returns the normalized amount.
    """
    if contribution.status == ContributionStatus.PAID.value:
        raise AlreadyPaid()

    left = remaining(contribution)
    amount = money(amount)
    if amount != left:
        raise InvalidAmount(f"The exact amount required is {left}")
    return amount


def validate_partial_payment(contribution, amount, allow_partial_payments: bool) -> float:
    if not allow_partial_payments:
        raise PartialPaymentsDisabled()

    if contribution.status == ContributionStatus.PAID.value:
        raise AlreadyPaid()

    amount = money(amount)
    left = remaining(contribution)
    if amount <= 0 or amount > left:
        raise InvalidAmount(f"Invalid amount. It must be greater than 0 and at most {left}")
    return amount


def apply_partial(contribution, amount) -> Tuple[float, str]:
    """New amount_paid and status once `amount` is applied."""
    new_amount_paid = money(contribution.amount_paid + amount)
    if new_amount_paid >= money(contribution.amount):
        return money(contribution.amount), ContributionStatus.PAID.value
    return new_amount_paid, ContributionStatus.PARTIAL.value


# ============================================================
# DEBTS
# ============================================================
def validate_repayment(debt, amount) -> float:
    amount = money(amount)
    if amount <= 0:
        raise InvalidAmount("Repayment amount must be greater than 0")

    if debt.status == DebtStatus.PAID.value:
        raise DebtAlreadyPaid()
    if debt.status == DebtStatus.CANCELLED.value:
        raise AlreadySettled("This debt has been cancelled")

    left = money(debt.remaining_amount)
    if amount > left:
        raise AmountExceedsBalance(left)
    return amount


def apply_repayment(debt, amount) -> Tuple[float, str]:
    new_remaining = money(debt.remaining_amount - amount)
    if new_remaining == 0:
        return 0.0, DebtStatus.PAID.value
    return new_remaining, DebtStatus.PARTIALLY_PAID.value


def debt_status_for(remaining_amount, initial_amount) -> str:
    if money(remaining_amount) <= 0:
        return DebtStatus.PAID.value
    if money(remaining_amount) < money(initial_amount):
        return DebtStatus.PARTIALLY_PAID.value
    return DebtStatus.ACTIVE.value
