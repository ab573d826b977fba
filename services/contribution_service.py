# services/contribution_service.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from models.models import Contribution, ContributionPlan, PartialPayment
from schemas.contribution_schema import PaymentRequest
from services import ledger_service
from services.access_service import ADMIN_ONLY, MANAGERS, authorize, get_owned_or_404, require_self_or_roles
from services.balance import money
from services.notification_service import Dispatcher
from services.pagination import paginate

logger = logging.getLogger(__name__)


def partial_payment_to_dict(partial: PartialPayment) -> dict:
    return {
        "id": partial.id,
        "contribution_id": partial.contribution_id,
        "amount": partial.amount,
        "payment_method": partial.payment_method,
        "payment_date": partial.payment_date,
        "transaction_id": partial.transaction_id,
    }


def contribution_to_dict(contribution: Contribution, with_payments: bool = False) -> dict:
    plan = contribution.contribution_plan
    data = {
        "id": contribution.id,
        "organization_id": contribution.organization_id,
        "membership_id": contribution.membership_id,
        "contribution_plan_id": contribution.contribution_plan_id,
        "plan_name": plan.name if plan else None,
        "amount": contribution.amount,
        "amount_paid": contribution.amount_paid,
        "remaining_amount": contribution.remaining_amount,
        "status": contribution.status,
        "due_date": contribution.due_date,
        "period": contribution.period,
        "payment_date": contribution.payment_date,
        "payment_method": contribution.payment_method,
        "transaction_id": contribution.transaction_id,
        "created_at": contribution.created_at,
    }
    if with_payments:
        data["partial_payments"] = [
            partial_payment_to_dict(p)
            for p in sorted(contribution.partial_payments, key=lambda p: p.payment_date)
        ]
    return data


def _filtered(
    organization_id: int,
    status: Optional[str] = None,
    membership_id: Optional[int] = None,
    plan_id: Optional[int] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
):
    statement = select(Contribution).where(Contribution.organization_id == organization_id)
    if status:
        statement = statement.where(Contribution.status == status)
    if membership_id:
        statement = statement.where(Contribution.membership_id == membership_id)
    if plan_id:
        statement = statement.where(Contribution.contribution_plan_id == plan_id)
    if due_from:
        statement = statement.where(Contribution.due_date >= due_from)
    if due_to:
        statement = statement.where(Contribution.due_date <= due_to)
    return statement


class ContributionService:

    @staticmethod
    def list(
        session: Session,
        organization_id: int,
        user_id: int,
        status: Optional[str] = None,
        membership_id: Optional[int] = None,
        plan_id: Optional[int] = None,
        due_from: Optional[datetime] = None,
        due_to: Optional[datetime] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        authorize(session, user_id, organization_id)
        statement = _filtered(organization_id, status, membership_id, plan_id, due_from, due_to)
        statement = statement.order_by(Contribution.due_date.desc(), Contribution.id.desc())
        return paginate(session, statement, page, limit, serialize=contribution_to_dict)

    @staticmethod
    def get(session: Session, organization_id: int, user_id: int, contribution_id: int) -> dict:
        authorize(session, user_id, organization_id)
        contribution = get_owned_or_404(session, Contribution, contribution_id, organization_id, "Contribution")
        return contribution_to_dict(contribution, with_payments=True)

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
        """A member's own contributions (or any member's, for ADMIN) with totals."""
        acting = authorize(session, user_id, organization_id)
        require_self_or_roles(acting, membership_id, ADMIN_ONLY)

        statement = _filtered(organization_id, status=status, membership_id=membership_id)
        result = paginate(
            session,
            statement.order_by(Contribution.due_date.desc(), Contribution.id.desc()),
            page,
            limit,
            serialize=contribution_to_dict,
        )

        total_due, total_paid, count = session.exec(
            select(
                func.coalesce(func.sum(Contribution.amount), 0.0),
                func.coalesce(func.sum(Contribution.amount_paid), 0.0),
                func.count(Contribution.id),
            ).where(
                Contribution.organization_id == organization_id,
                Contribution.membership_id == membership_id,
            )
        ).one()
        result["totals"] = {
            "total_due": money(total_due),
            "total_paid": money(total_paid),
            "total_remaining": money(total_due - total_paid),
            "count": count,
        }
        return result

    # ============================================================
    # ✅ PAYMENTS (delegated to the ledger coordinator)
    # ============================================================
    @staticmethod
    def mark_paid(
        session: Session,
        organization_id: int,
        user_id: int,
        contribution_id: int,
        data: PaymentRequest,
        dispatch: Optional[Dispatcher] = None,
    ) -> dict:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        contribution, transaction = ledger_service.apply_full_payment(
            session,
            organization_id,
            contribution_id,
            data.amount,
            data.payment_method.value,
            actor,
            dispatch=dispatch,
        )
        return {
            "contribution": contribution_to_dict(contribution),
            "transaction_id": transaction.id,
            "reference": transaction.reference,
        }

    @staticmethod
    def add_partial_payment(
        session: Session,
        organization_id: int,
        user_id: int,
        contribution_id: int,
        data: PaymentRequest,
    ) -> dict:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        contribution, partial, transaction = ledger_service.apply_partial_payment(
            session,
            organization_id,
            contribution_id,
            data.amount,
            data.payment_method.value,
            actor,
        )
        return {
            "contribution": contribution_to_dict(contribution),
            "partial_payment": partial_payment_to_dict(partial),
            "transaction_id": transaction.id,
            "reference": transaction.reference,
        }
