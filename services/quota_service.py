# services/quota_service.py
import logging
from datetime import datetime
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlmodel import Session, select

from core.exceptions import PlanIncompatible, QuotaExceeded, SubscriptionMissing
from models.models import Membership, MembershipStatus, PlanName, Subscription

logger = logging.getLogger(__name__)

# Stored ceiling for plans sold as "unlimited"
UNLIMITED_MEMBERS = 1000


# ============================================================
# PLAN CATALOGUE
# ============================================================
class MemberLimitUtils:
    """Plan catalogue and member ceiling helpers"""

    PLANS: Dict[str, Dict] = {
        PlanName.FREE.value: {
            "name": PlanName.FREE.value,
            "max_members": 50,
            "unlimited": False,
            "price": 0.0,
            "features": ["Up to 50 members", "Contribution tracking", "Debt management"],
        },
        PlanName.BASIC.value: {
            "name": PlanName.BASIC.value,
            "max_members": 200,
            "unlimited": False,
            "price": 5000.0,
            "features": ["Up to 200 members", "Partial payments", "Email notifications"],
        },
        PlanName.PREMIUM.value: {
            "name": PlanName.PREMIUM.value,
            "max_members": 500,
            "unlimited": False,
            "price": 15000.0,
            "features": ["Up to 500 members", "Advanced reports", "Priority support"],
        },
        PlanName.ENTERPRISE.value: {
            "name": PlanName.ENTERPRISE.value,
            "max_members": UNLIMITED_MEMBERS,
            "unlimited": True,
            "price": 30000.0,
            "features": ["Unlimited members", "Dedicated support", "Custom integrations"],
        },
    }

    @staticmethod
    def get_plan(plan_name: str) -> Optional[Dict]:
        return MemberLimitUtils.PLANS.get(str(plan_name).upper())

    @staticmethod
    def get_plan_limits(plan_name: str) -> int:
        plan = MemberLimitUtils.get_plan(plan_name)
        if not plan:
            return MemberLimitUtils.PLANS[PlanName.FREE.value]["max_members"]
        return plan["max_members"]

    @staticmethod
    def can_organization_add_member(max_members: int, current_member_count: int) -> bool:
        """True if the organization can take one more member"""
        return current_member_count < max_members

    @staticmethod
    def available_plans() -> List[Dict]:
        return [dict(plan) for plan in MemberLimitUtils.PLANS.values()]

    @staticmethod
    def calculate_end_date(plan_name: str, start: Optional[datetime] = None) -> datetime:
        """FREE runs a year, paid plans a month."""
        start = start or datetime.utcnow()
        if str(plan_name).upper() == PlanName.FREE.value:
            return start + relativedelta(years=1)
        return start + relativedelta(months=1)


# ============================================================
# GUARDS
# ============================================================
def count_active_members(session: Session, organization_id: int) -> int:
    return session.exec(
        select(func.count(Membership.id)).where(
            Membership.organization_id == organization_id,
            Membership.status == MembershipStatus.ACTIVE.value,
        )
    ).one()


def get_subscription(session: Session, organization_id: int) -> Optional[Subscription]:
    return session.exec(
        select(Subscription).where(Subscription.organization_id == organization_id)
    ).first()


def check_member_quota(session: Session, organization_id: int) -> Subscription:
    """
    Refuse a new membership when the organization is at its plan ceiling.
    Called only before creating a Membership.
    """
    subscription = get_subscription(session, organization_id)
    if not subscription:
        raise SubscriptionMissing()

    # current_usage tracks ACTIVE members; the live count guards against a stale counter
    active_members = max(count_active_members(session, organization_id), subscription.current_usage or 0)
    if not MemberLimitUtils.can_organization_add_member(subscription.max_members, active_members):
        logger.info(
            "🚫 Member quota reached for org %s (%s/%s)",
            organization_id, active_members, subscription.max_members,
        )
        raise QuotaExceeded(
            f"Member limit reached ({active_members}/{subscription.max_members}). "
            "Upgrade your plan to add more members."
        )
    return subscription


def check_plan_change(subscription: Subscription, target_plan: str, active_members: int) -> Dict:
    """Validate a plan switch and return the target catalogue entry."""
    plan = MemberLimitUtils.get_plan(target_plan)
    if not plan:
        raise PlanIncompatible(f"Unknown plan: {target_plan}")

    if subscription.plan == plan["name"]:
        raise PlanIncompatible("The organization is already on this plan")

    if active_members > plan["max_members"]:
        raise PlanIncompatible(
            f"Cannot switch to {plan['name']}: {active_members} active members "
            f"exceed the limit of {plan['max_members']}"
        )
    return plan


def adjust_usage(session: Session, organization_id: int, delta: int) -> None:
    """Move subscription.current_usage by `delta`, never below zero. Caller commits."""
    subscription = get_subscription(session, organization_id)
    if not subscription:
        return
    subscription.current_usage = max(0, (subscription.current_usage or 0) + delta)
    subscription.updated_at = datetime.utcnow()
    session.add(subscription)
