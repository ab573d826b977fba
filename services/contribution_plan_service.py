# services/contribution_plan_service.py
"""
CONTRIBUTION PLAN GENERATOR
===========================

Business rules:
1. Plans are organization-scoped templates (amount + frequency).
2. Generation expands a plan into one PENDING Contribution per ACTIVE member
   for one due period (the calendar month of the due date).
3. Due dates are anchored on the plan's start_date: the next cadence point
   that is not in the past, plus an optional offset. Re-running on the same
   day always lands on the same period.
4. The whole expansion is one atomic unit. The (membership, plan, period)
   unique constraint turns a racing duplicate run into AlreadyGenerated.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_
from sqlmodel import Session, select

from core.exceptions import (
    AlreadyGenerated,
    DuplicateAssignment,
    NotFound,
    PlanInactive,
    PlanInUse,
    ValidationError,
)
from models.models import (
    Contribution,
    ContributionPlan,
    ContributionStatus,
    Frequency,
    Membership,
    MembershipStatus,
)
from schemas.contribution_plan_schema import ContributionPlanCreate, ContributionPlanUpdate
from services.access_service import MANAGERS, authorize, get_owned_or_404
from services.audit_service import record_audit
from services.ledger_service import atomic
from services.pagination import paginate

logger = logging.getLogger(__name__)

FREQUENCY_STEPS = {
    Frequency.WEEKLY.value: relativedelta(weeks=1),
    Frequency.MONTHLY.value: relativedelta(months=1),
    Frequency.QUARTERLY.value: relativedelta(months=3),
    Frequency.YEARLY.value: relativedelta(years=1),
}
# CUSTOM and anything unknown
DEFAULT_STEP = relativedelta(days=30)


# ============================================================
# DUE DATES & PERIODS
# ============================================================
def frequency_step(frequency) -> relativedelta:
    value = frequency.value if isinstance(frequency, Frequency) else str(frequency or "").upper()
    return FREQUENCY_STEPS.get(value, DEFAULT_STEP)


def calculate_due_date(
    frequency,
    offset_days: int = 0,
    anchor: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Without an anchor: one step ahead of now.
    With an anchor: the first `anchor + k*step` (k >= 0) falling on or after today.
    `offset_days` is added last.
    """
    now = now or datetime.utcnow()
    step = frequency_step(frequency)

    if anchor is None:
        due = now + step
    else:
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        k = 0
        due = anchor
        # anchor + step * k keeps month-end anchors stable (Jan 31 -> Feb 28 -> Mar 31)
        while due < today:
            k += 1
            due = anchor + step * k

    return due + relativedelta(days=offset_days)


def month_period(due_date: datetime) -> Tuple[datetime, datetime]:
    """[first day of the due month, first day of the next month)"""
    start = due_date.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, start + relativedelta(months=1)


def period_key(due_date: datetime) -> str:
    return due_date.strftime("%Y-%m")


def plan_to_dict(plan: ContributionPlan, contribution_count: Optional[int] = None) -> dict:
    return {
        "id": plan.id,
        "organization_id": plan.organization_id,
        "name": plan.name,
        "description": plan.description,
        "amount": plan.amount,
        "frequency": plan.frequency,
        "start_date": plan.start_date,
        "end_date": plan.end_date,
        "is_active": plan.is_active,
        "created_at": plan.created_at,
        "contribution_count": contribution_count,
    }


def _count_contributions(session: Session, plan_id: int) -> int:
    return session.exec(
        select(func.count(Contribution.id)).where(Contribution.contribution_plan_id == plan_id)
    ).one()


def _resolve_due_date(plan: ContributionPlan, offset_days: int, now: Optional[datetime]) -> datetime:
    if not plan.is_active:
        raise PlanInactive()

    due_date = calculate_due_date(plan.frequency, offset_days, anchor=plan.start_date, now=now)
    if plan.end_date and due_date > plan.end_date:
        raise PlanInactive("Contribution plan has ended")
    return due_date


class ContributionPlanService:

    # ============================================================
    # ✅ CRUD
    # ============================================================
    @staticmethod
    def create(session: Session, organization_id: int, user_id: int, data: ContributionPlanCreate) -> ContributionPlan:
        actor = authorize(session, user_id, organization_id, MANAGERS)

        with atomic(session):
            plan = ContributionPlan(
                organization_id=organization_id,
                name=data.name.strip(),
                description=data.description,
                amount=round(data.amount, 2),
                frequency=data.frequency.value,
                start_date=data.start_date or datetime.utcnow(),
                end_date=data.end_date,
            )
            session.add(plan)

        session.refresh(plan)
        logger.info("📋 Contribution plan %s created in org %s", plan.id, organization_id)
        record_audit(
            session, "CREATE_CONTRIBUTION_PLAN", "contribution_plan", plan.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"name": plan.name, "amount": plan.amount, "frequency": plan.frequency},
        )
        return plan

    @staticmethod
    def get(session: Session, organization_id: int, user_id: int, plan_id: int) -> dict:
        authorize(session, user_id, organization_id)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")
        return plan_to_dict(plan, _count_contributions(session, plan.id))

    @staticmethod
    def list(
        session: Session,
        organization_id: int,
        user_id: int,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        authorize(session, user_id, organization_id)

        statement = select(ContributionPlan).where(ContributionPlan.organization_id == organization_id)
        if is_active is not None:
            statement = statement.where(ContributionPlan.is_active == is_active)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(ContributionPlan.name.ilike(pattern), ContributionPlan.description.ilike(pattern))
            )
        statement = statement.order_by(ContributionPlan.created_at.desc())
        return paginate(session, statement, page, limit, serialize=plan_to_dict)

    @staticmethod
    def update(
        session: Session, organization_id: int, user_id: int, plan_id: int, data: ContributionPlanUpdate
    ) -> ContributionPlan:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "frequency" in changes:
            changes["frequency"] = changes["frequency"].value

        start = changes.get("start_date", plan.start_date)
        end = changes.get("end_date", plan.end_date)
        if start and end and end <= start:
            raise ValidationError("end_date must be after start_date")

        with atomic(session):
            for field, value in changes.items():
                setattr(plan, field, value)
            plan.updated_at = datetime.utcnow()
            session.add(plan)

        record_audit(
            session, "UPDATE_CONTRIBUTION_PLAN", "contribution_plan", plan_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id, details=changes,
        )
        session.refresh(plan)
        return plan

    @staticmethod
    def toggle_active(session: Session, organization_id: int, user_id: int, plan_id: int) -> ContributionPlan:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")

        with atomic(session):
            plan.is_active = not plan.is_active
            plan.updated_at = datetime.utcnow()
            session.add(plan)

        record_audit(
            session, "TOGGLE_CONTRIBUTION_PLAN", "contribution_plan", plan_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"is_active": plan.is_active},
        )
        session.refresh(plan)
        return plan

    @staticmethod
    def delete(session: Session, organization_id: int, user_id: int, plan_id: int) -> dict:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")

        if _count_contributions(session, plan_id):
            raise PlanInUse()

        name = plan.name
        with atomic(session):
            session.delete(plan)

        record_audit(
            session, "DELETE_CONTRIBUTION_PLAN", "contribution_plan", plan_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"name": name},
        )
        return {"success": True, "message": "Contribution plan deleted"}

    # ============================================================
    # ✅ GENERATION
    # ============================================================
    @staticmethod
    def generate_contributions_for_plan(
        session: Session,
        organization_id: int,
        plan_id: int,
        user_id: int,
        force: bool = False,
        due_date_offset: int = 0,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Expand the plan for every ACTIVE member of the organization.
        With force, members already holding a contribution for the period are
        skipped and the rest are filled in.
        """
        actor = authorize(session, user_id, organization_id, MANAGERS)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")
        due_date = _resolve_due_date(plan, due_date_offset, now)
        period = period_key(due_date)
        period_start, period_end = month_period(due_date)

        already_billed = set(
            session.exec(
                select(Contribution.membership_id).where(
                    Contribution.contribution_plan_id == plan_id,
                    Contribution.due_date >= period_start,
                    Contribution.due_date < period_end,
                )
            ).all()
        )
        if already_billed and not force:
            raise AlreadyGenerated(f"Contributions already generated for {period}")

        members = session.exec(
            select(Membership).where(
                Membership.organization_id == organization_id,
                Membership.status == MembershipStatus.ACTIVE.value,
            )
        ).all()
        targets = [m for m in members if m.id not in already_billed]

        with atomic(session, on_integrity_error=AlreadyGenerated(f"Contributions already generated for {period}")):
            for membership in targets:
                session.add(
                    Contribution(
                        organization_id=organization_id,
                        membership_id=membership.id,
                        contribution_plan_id=plan.id,
                        amount=plan.amount,
                        amount_paid=0.0,
                        status=ContributionStatus.PENDING.value,
                        due_date=due_date,
                        period=period,
                    )
                )

        generated = len(targets)
        logger.info("📋 Generated %s contributions for plan %s (%s)", generated, plan_id, period)

        record_audit(
            session, "GENERATE_CONTRIBUTIONS", "contribution_plan", plan_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"generatedCount": generated, "force": force, "period": period, "dueDate": due_date},
        )
        return {"success": True, "generated": generated, "period": period, "due_date": due_date}

    @staticmethod
    def assign_plan_to_member(
        session: Session,
        organization_id: int,
        plan_id: int,
        membership_id: int,
        user_id: int,
        due_date_offset: int = 0,
        now: Optional[datetime] = None,
    ) -> Contribution:
        actor = authorize(session, user_id, organization_id, MANAGERS)
        plan = get_owned_or_404(session, ContributionPlan, plan_id, organization_id, "Contribution plan")
        due_date = _resolve_due_date(plan, due_date_offset, now)
        period = period_key(due_date)
        period_start, period_end = month_period(due_date)

        membership = get_owned_or_404(session, Membership, membership_id, organization_id, "Member")
        if membership.status != MembershipStatus.ACTIVE.value:
            raise ValidationError("Only active members can be assigned a contribution plan")

        existing = session.exec(
            select(Contribution.id).where(
                Contribution.membership_id == membership_id,
                Contribution.contribution_plan_id == plan_id,
                Contribution.due_date >= period_start,
                Contribution.due_date < period_end,
            )
        ).first()
        if existing is not None:
            raise DuplicateAssignment()

        with atomic(session, on_integrity_error=DuplicateAssignment()):
            contribution = Contribution(
                organization_id=organization_id,
                membership_id=membership_id,
                contribution_plan_id=plan.id,
                amount=plan.amount,
                amount_paid=0.0,
                status=ContributionStatus.PENDING.value,
                due_date=due_date,
                period=period,
            )
            session.add(contribution)

        session.refresh(contribution)
        record_audit(
            session, "ASSIGN_CONTRIBUTION_PLAN", "contribution", contribution.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"planId": plan_id, "memberId": membership_id, "period": period},
        )
        return contribution
