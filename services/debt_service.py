# services/debt_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from core.exceptions import DebtAlreadyPaid, NotFound, ValidationError
from models.models import Debt, DebtStatus, Membership, MembershipStatus, Repayment
from schemas.debt_schema import DebtCreate, DebtStatusUpdate, RepaymentCreate
from services import ledger_service
from services.access_service import ADMIN_ONLY, MANAGERS, authorize, get_owned_or_404, require_self_or_roles
from services.audit_service import record_audit
from services.balance import debt_status_for, money
from services.ledger_service import atomic
from services.pagination import paginate

logger = logging.getLogger(__name__)

RECENT_REPAYMENT_DAYS = 7

# Statuses that must agree with the remaining balance
DERIVED_STATUSES = {DebtStatus.ACTIVE.value, DebtStatus.PARTIALLY_PAID.value, DebtStatus.PAID.value}


def repayment_to_dict(repayment: Repayment) -> dict:
    return {
        "id": repayment.id,
        "debt_id": repayment.debt_id,
        "amount": repayment.amount,
        "payment_method": repayment.payment_method,
        "payment_date": repayment.payment_date,
        "transaction_id": repayment.transaction_id,
    }


def debt_to_dict(debt: Debt, with_repayments: bool = False) -> dict:
    data = {
        "id": debt.id,
        "organization_id": debt.organization_id,
        "membership_id": debt.membership_id,
        "title": debt.title,
        "description": debt.description,
        "initial_amount": debt.initial_amount,
        "remaining_amount": debt.remaining_amount,
        "status": debt.status,
        "due_date": debt.due_date,
        "created_at": debt.created_at,
    }
    if with_repayments:
        data["repayments"] = [
            repayment_to_dict(r) for r in sorted(debt.repayments, key=lambda r: r.payment_date, reverse=True)
        ]
    return data


class DebtService:

    # ============================================================
    # ✅ CREATE
    # ============================================================
    @staticmethod
    def create(session: Session, organization_id: int, user_id: int, data: DebtCreate) -> Debt:
        actor = authorize(session, user_id, organization_id, MANAGERS)

        membership = get_owned_or_404(session, Membership, data.membership_id, organization_id, "Member")
        if membership.status != MembershipStatus.ACTIVE.value:
            raise ValidationError("Debts can only be recorded for active members")

        amount = money(data.amount)
        with atomic(session):
            debt = Debt(
                organization_id=organization_id,
                membership_id=membership.id,
                title=data.title.strip(),
                description=data.description,
                initial_amount=amount,
                remaining_amount=amount,
                status=DebtStatus.ACTIVE.value,
                due_date=data.due_date,
            )
            session.add(debt)

        session.refresh(debt)
        logger.info("🧾 Debt %s (%s) recorded for membership %s", debt.id, amount, membership.id)
        record_audit(
            session, "CREATE_DEBT", "debt", debt.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"memberId": membership.id, "amount": amount, "title": debt.title},
        )
        return debt

    # ============================================================
    # ✅ READ
    # ============================================================
    @staticmethod
    def get(session: Session, organization_id: int, user_id: int, debt_id: int) -> dict:
        acting = authorize(session, user_id, organization_id)
        debt = get_owned_or_404(session, Debt, debt_id, organization_id, "Debt")
        require_self_or_roles(acting, debt.membership_id, MANAGERS)
        return debt_to_dict(debt, with_repayments=True)

    @staticmethod
    def list(
        session: Session,
        organization_id: int,
        user_id: int,
        status: Optional[str] = None,
        membership_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        authorize(session, user_id, organization_id, MANAGERS)

        statement = select(Debt).where(Debt.organization_id == organization_id)
        if status:
            statement = statement.where(Debt.status == status)
        if membership_id:
            statement = statement.where(Debt.membership_id == membership_id)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(Debt.title.ilike(pattern) | Debt.description.ilike(pattern))
        statement = statement.order_by(Debt.created_at.desc(), Debt.id.desc())
        return paginate(session, statement, page, limit, serialize=debt_to_dict)

    @staticmethod
    def list_by_member(
        session: Session,
        organization_id: int,
        user_id: int,
        membership_id: int,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        acting = authorize(session, user_id, organization_id)
        require_self_or_roles(acting, membership_id, ADMIN_ONLY)

        statement = select(Debt).where(Debt.organization_id == organization_id, Debt.membership_id == membership_id)
        if status:
            statement = statement.where(Debt.status == status)
        result = paginate(
            session, statement.order_by(Debt.created_at.desc(), Debt.id.desc()), page, limit, serialize=debt_to_dict
        )

        total_initial, total_remaining, count = session.exec(
            select(
                func.coalesce(func.sum(Debt.initial_amount), 0.0),
                func.coalesce(func.sum(Debt.remaining_amount), 0.0),
                func.count(Debt.id),
            ).where(Debt.organization_id == organization_id, Debt.membership_id == membership_id)
        ).one()
        result["totals"] = {
            "total_initial": money(total_initial),
            "total_remaining": money(total_remaining),
            "count": count,
        }
        return result

    # ============================================================
    # ✅ REPAYMENTS
    # ============================================================
    @staticmethod
    def add_repayment(
        session: Session, organization_id: int, user_id: int, debt_id: int, data: RepaymentCreate
    ) -> dict:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        debt, repayment, transaction = ledger_service.apply_repayment(
            session, organization_id, debt_id, data.amount, data.payment_method.value, actor
        )
        return {
            "debt": debt_to_dict(debt),
            "repayment": repayment_to_dict(repayment),
            "transaction_id": transaction.id,
            "reference": transaction.reference,
        }

    @staticmethod
    def list_repayments(session: Session, organization_id: int, user_id: int, debt_id: int) -> dict:
        acting = authorize(session, user_id, organization_id)
        debt = get_owned_or_404(session, Debt, debt_id, organization_id, "Debt")
        require_self_or_roles(acting, debt.membership_id, MANAGERS)

        repayments = session.exec(
            select(Repayment).where(Repayment.debt_id == debt_id).order_by(Repayment.payment_date.desc())
        ).all()
        total_repaid = money(sum(r.amount for r in repayments))
        rate = round(total_repaid / debt.initial_amount * 100, 2) if debt.initial_amount else 0.0
        return {
            "debt_id": debt_id,
            "repayments": [repayment_to_dict(r) for r in repayments],
            "total_repaid": total_repaid,
            "repayment_rate": rate,
        }

    # ============================================================
    # ✅ STATUS
    # ============================================================
    @staticmethod
    def update_status(
        session: Session, organization_id: int, user_id: int, debt_id: int, data: DebtStatusUpdate
    ) -> Debt:
        """
        ACTIVE, PARTIALLY_PAID and PAID are derived from the balance and must
        match it. OVERDUE and CANCELLED are only allowed while something is owed;
        a fully repaid debt stays PAID.
        """
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)

        new_status = data.status.value
        with atomic(session):
            debt = ledger_service.lock_for_update(session, Debt, debt_id)
            if not debt or debt.organization_id != organization_id:
                raise NotFound("Debt not found in this organization")

            old_status = debt.status
            expected = debt_status_for(debt.remaining_amount, debt.initial_amount)
            if expected == DebtStatus.PAID.value and new_status != expected:
                raise DebtAlreadyPaid("This debt is fully repaid and stays PAID")
            if new_status in DERIVED_STATUSES:
                if new_status != expected:
                    raise ValidationError(
                        f"Status {new_status} does not match the remaining balance ({debt.remaining_amount}); "
                        f"expected {expected}"
                    )
            debt.status = new_status
            debt.updated_at = datetime.utcnow()
            session.add(debt)

        record_audit(
            session, "UPDATE_DEBT_STATUS", "debt", debt_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": old_status, "after": new_status},
        )
        session.refresh(debt)
        return debt

    # ============================================================
    # ✅ SUMMARY
    # ============================================================
    @staticmethod
    def summary(session: Session, organization_id: int, user_id: int) -> dict:
        authorize(session, user_id, organization_id, MANAGERS)

        rows = session.exec(
            select(
                Debt.status,
                func.count(Debt.id),
                func.coalesce(func.sum(Debt.initial_amount), 0.0),
                func.coalesce(func.sum(Debt.remaining_amount), 0.0),
            )
            .where(Debt.organization_id == organization_id)
            .group_by(Debt.status)
        ).all()

        by_status = {}
        total_debts = 0
        total_initial = 0.0
        total_remaining = 0.0
        for status, count, initial, remaining in rows:
            by_status[status] = {"count": count, "remaining": money(remaining)}
            total_debts += count
            total_initial += initial
            total_remaining += remaining

        active_debts = sum(
            by_status.get(s, {}).get("count", 0)
            for s in (DebtStatus.ACTIVE.value, DebtStatus.PARTIALLY_PAID.value, DebtStatus.OVERDUE.value)
        )

        since = datetime.utcnow() - timedelta(days=RECENT_REPAYMENT_DAYS)
        recent_count, recent_amount = session.exec(
            select(func.count(Repayment.id), func.coalesce(func.sum(Repayment.amount), 0.0))
            .join(Debt, Debt.id == Repayment.debt_id)
            .where(Debt.organization_id == organization_id, Repayment.payment_date >= since)
        ).one()

        return {
            "total_debts": total_debts,
            "active_debts": active_debts,
            "total_initial": money(total_initial),
            "total_remaining": money(total_remaining),
            "total_repaid": money(total_initial - total_remaining),
            "by_status": by_status,
            "recent_repayments": recent_count,
            "recent_repayment_amount": money(recent_amount),
        }
