# services/ledger_service.py
"""
LEDGER SERVICE - ATOMIC PAYMENT APPLICATION
===========================================

Business rules:
1. Every money movement (full payment, partial payment, repayment) writes an
   immutable Transaction row in the same database transaction as the ledger
   entity it settles.
2. The target Contribution/Debt is re-read with a row lock inside the unit, so
   two concurrent payments can never both see the same stale balance.
3. Any failure inside the unit rolls everything back.
4. Audit entries and notifications are written after commit and are
   best-effort: they never undo a committed payment.
"""
import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from core.config import settings
from core.exceptions import DomainError, LedgerError, NotFound
from models.models import (
    Contribution,
    ContributionStatus,
    Debt,
    Membership,
    Organization,
    OrganizationSettings,
    PartialPayment,
    PaymentStatus,
    Repayment,
    Transaction,
    TransactionType,
)
from services import balance
from services.audit_service import record_audit
from services.notification_service import Dispatcher, send_payment_notification

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

CONTRIBUTION_PREFIX = "CONT"
PARTIAL_PREFIX = "PART"
REPAYMENT_PREFIX = "REPAY"


# ============================================================
# UNIT OF WORK
# ============================================================
@contextmanager
def atomic(session: Session, on_integrity_error: Optional[DomainError] = None) -> Iterator[Session]:
    """
    Commit on success, roll back on any failure.

    Domain errors propagate unchanged. Database errors become LedgerError, or
    `on_integrity_error` when a unique/foreign-key constraint fired.
    """
    try:
        yield session
        session.commit()
    except DomainError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        if on_integrity_error is not None:
            raise on_integrity_error from e
        logger.exception("❌ Ledger constraint violated")
        raise LedgerError() from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("❌ Ledger database error")
        raise LedgerError() from e
    except Exception:
        session.rollback()
        raise


def lock_for_update(session: Session, model: Type[ModelT], object_id: int) -> Optional[ModelT]:
    """Fresh read of one row with SELECT ... FOR UPDATE (a no-op on SQLite)."""
    statement = (
        select(model)
        .where(model.id == object_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()


def generate_reference(prefix: str, source_id, epoch_ms: Optional[int] = None) -> str:
    """<PREFIX>-<epoch ms>-<last 6 chars of the source id>. Best-effort unique."""
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f"{prefix}-{epoch_ms}-{str(source_id)[-6:]}"


def _currency_for(session: Session, organization_id: int) -> str:
    organization = session.get(Organization, organization_id)
    return organization.currency if organization else settings.DEFAULT_CURRENCY


def _locked_contribution(session: Session, organization_id: int, contribution_id: int) -> Contribution:
    contribution = lock_for_update(session, Contribution, contribution_id)
    if not contribution or contribution.organization_id != organization_id:
        raise NotFound("Contribution not found in this organization")
    return contribution


# ============================================================
# FULL CONTRIBUTION PAYMENT
# ============================================================
def apply_full_payment(
    session: Session,
    organization_id: int,
    contribution_id: int,
    amount: float,
    payment_method: str,
    actor: Membership,
    dispatch: Optional[Dispatcher] = None,
) -> Tuple[Contribution, Transaction]:
    """
    Settle the whole remaining balance of a contribution.

    ATOMIC: contribution update + Transaction + back-link.
    After commit: audit + payment notification (best-effort).
    """
    with atomic(session):
        contribution = _locked_contribution(session, organization_id, contribution_id)
        amount = balance.validate_full_payment(contribution, amount)

        now = datetime.utcnow()
        contribution.amount_paid = contribution.amount
        contribution.status = ContributionStatus.PAID.value
        contribution.payment_date = now
        contribution.payment_method = payment_method
        contribution.updated_at = now

        transaction = Transaction(
            organization_id=organization_id,
            membership_id=contribution.membership_id,
            type=TransactionType.CONTRIBUTION.value,
            amount=amount,
            currency=_currency_for(session, organization_id),
            payment_method=payment_method,
            payment_status=PaymentStatus.COMPLETED.value,
            reference=generate_reference(CONTRIBUTION_PREFIX, contribution.id),
            transaction_metadata=json.dumps({"contributionId": contribution.id}),
        )
        session.add(transaction)
        session.flush()

        contribution.transaction_id = transaction.id
        session.add(contribution)

    logger.info("💰 Contribution %s paid in full (%s) by membership %s", contribution_id, amount, actor.id)

    record_audit(
        session,
        action="MARK_CONTRIBUTION_PAID",
        resource="contribution",
        resource_id=contribution_id,
        user_id=actor.user_id,
        organization_id=organization_id,
        membership_id=actor.id,
        details={"amountPaid": amount, "paymentMethod": payment_method, "transactionId": transaction.id},
    )
    send_payment_notification(session, contribution, amount, dispatch=dispatch)

    session.refresh(contribution)
    return contribution, transaction


# ============================================================
# PARTIAL CONTRIBUTION PAYMENT
# ============================================================
def apply_partial_payment(
    session: Session,
    organization_id: int,
    contribution_id: int,
    amount: float,
    payment_method: str,
    actor: Membership,
) -> Tuple[Contribution, PartialPayment, Transaction]:
    """
    Apply an installment against a contribution.

    ATOMIC: PartialPayment + contribution update + Transaction + back-link.
    """
    with atomic(session):
        contribution = _locked_contribution(session, organization_id, contribution_id)
        org_settings = session.exec(
            select(OrganizationSettings).where(OrganizationSettings.organization_id == organization_id)
        ).first()
        allow_partial = bool(org_settings and org_settings.allow_partial_payments)

        amount = balance.validate_partial_payment(contribution, amount, allow_partial)

        now = datetime.utcnow()
        partial = PartialPayment(
            contribution_id=contribution.id,
            amount=amount,
            payment_method=payment_method,
            payment_date=now,
        )
        session.add(partial)
        session.flush()

        new_amount_paid, new_status = balance.apply_partial(contribution, amount)
        contribution.amount_paid = new_amount_paid
        contribution.status = new_status
        contribution.updated_at = now
        if new_status == ContributionStatus.PAID.value:
            contribution.payment_date = now
            contribution.payment_method = payment_method
        session.add(contribution)

        transaction = Transaction(
            organization_id=organization_id,
            membership_id=contribution.membership_id,
            type=TransactionType.CONTRIBUTION.value,
            amount=amount,
            currency=_currency_for(session, organization_id),
            description="Partial contribution payment",
            payment_method=payment_method,
            payment_status=PaymentStatus.COMPLETED.value,
            reference=generate_reference(PARTIAL_PREFIX, partial.id),
            transaction_metadata=json.dumps({"contributionId": contribution.id, "partialPaymentId": partial.id}),
        )
        session.add(transaction)
        session.flush()

        partial.transaction_id = transaction.id
        session.add(partial)

    logger.info("💰 Partial payment %s on contribution %s -> %s", amount, contribution_id, new_status)

    record_audit(
        session,
        action="ADD_PARTIAL_PAYMENT",
        resource="contribution",
        resource_id=contribution_id,
        user_id=actor.user_id,
        organization_id=organization_id,
        membership_id=actor.id,
        details={
            "amount": amount,
            "paymentMethod": payment_method,
            "amountPaid": new_amount_paid,
            "status": new_status,
        },
    )

    session.refresh(contribution)
    return contribution, partial, transaction


# ============================================================
# DEBT REPAYMENT
# ============================================================
def apply_repayment(
    session: Session,
    organization_id: int,
    debt_id: int,
    amount: float,
    payment_method: str,
    actor: Membership,
) -> Tuple[Debt, Repayment, Transaction]:
    """
    Repay (part of) a debt.

    ATOMIC: fresh debt read + Repayment + debt update + Transaction + back-link.
    """
    with atomic(session):
        debt = lock_for_update(session, Debt, debt_id)
        if not debt or debt.organization_id != organization_id:
            raise NotFound("Debt not found in this organization")

        amount = balance.validate_repayment(debt, amount)

        now = datetime.utcnow()
        repayment = Repayment(
            debt_id=debt.id,
            amount=amount,
            payment_method=payment_method,
            payment_date=now,
        )
        session.add(repayment)
        session.flush()

        debt.remaining_amount, debt.status = balance.apply_repayment(debt, amount)
        debt.updated_at = now
        session.add(debt)

        transaction = Transaction(
            organization_id=organization_id,
            membership_id=debt.membership_id,
            type=TransactionType.DEBT_REPAYMENT.value,
            amount=amount,
            currency=_currency_for(session, organization_id),
            description=f"Debt repayment: {debt.title}",
            payment_method=payment_method,
            payment_status=PaymentStatus.COMPLETED.value,
            reference=generate_reference(REPAYMENT_PREFIX, repayment.id),
            transaction_metadata=json.dumps({"debtId": debt.id, "repaymentId": repayment.id}),
        )
        session.add(transaction)
        session.flush()

        repayment.transaction_id = transaction.id
        session.add(repayment)

    logger.info("💰 Repayment %s on debt %s", amount, debt_id)

    record_audit(
        session,
        action="ADD_REPAYMENT",
        resource="debt",
        resource_id=debt_id,
        user_id=actor.user_id,
        organization_id=organization_id,
        membership_id=actor.id,
        details={"amount": amount, "paymentMethod": payment_method},
    )

    session.refresh(debt)
    return debt, repayment, transaction
