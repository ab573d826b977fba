# services/subscription_service.py
import logging
from datetime import datetime
from typing import List

from sqlmodel import Session

from core.config import settings
from core.exceptions import SubscriptionMissing, ValidationError
from models.models import Organization, PlanName, Subscription, SubscriptionStatus
from schemas.subscription_schema import ChangePlanRequest, SubscriptionStatusUpdate, SubscriptionUpdate
from services.access_service import ADMIN_ONLY, authorize
from services.audit_service import record_audit
from services.ledger_service import atomic
from services.quota_service import MemberLimitUtils, check_plan_change, count_active_members, get_subscription

logger = logging.getLogger(__name__)

USAGE_HIGH = 90
USAGE_MEDIUM = 75


def _next_plan(plan_name: str):
    names = [p.value for p in PlanName]
    try:
        index = names.index(plan_name)
    except ValueError:
        return None
    return names[index + 1] if index + 1 < len(names) else None


def _get_or_create(session: Session, organization_id: int) -> Subscription:
    """Organizations created before subscriptions existed get a FREE one on first read."""
    subscription = get_subscription(session, organization_id)
    if subscription:
        return subscription

    organization = session.get(Organization, organization_id)
    free = MemberLimitUtils.get_plan(PlanName.FREE.value)
    now = datetime.utcnow()
    with atomic(session):
        subscription = Subscription(
            organization_id=organization_id,
            plan=PlanName.FREE.value,
            status=SubscriptionStatus.ACTIVE.value,
            start_date=now,
            end_date=MemberLimitUtils.calculate_end_date(PlanName.FREE.value, now),
            max_members=free["max_members"],
            current_usage=count_active_members(session, organization_id),
            price=free["price"],
            currency=organization.currency if organization else settings.DEFAULT_CURRENCY,
        )
        session.add(subscription)

    logger.info("💳 Default FREE subscription created for org %s", organization_id)
    session.refresh(subscription)
    return subscription


class SubscriptionService:
    """Subscription reads and plan management (one subscription per organization)"""

    @staticmethod
    def get(session: Session, organization_id: int, user_id: int) -> Subscription:
        authorize(session, user_id, organization_id)
        return _get_or_create(session, organization_id)

    @staticmethod
    def update(session: Session, organization_id: int, user_id: int, data: SubscriptionUpdate) -> Subscription:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        subscription = get_subscription(session, organization_id)
        if not subscription:
            raise SubscriptionMissing()

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()
        with atomic(session):
            for field, value in changes.items():
                setattr(subscription, field, value)
            subscription.updated_at = datetime.utcnow()
            session.add(subscription)

        record_audit(
            session, "UPDATE_SUBSCRIPTION", "subscription", subscription.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id, details=changes,
        )
        session.refresh(subscription)
        return subscription

    @staticmethod
    def update_status(
        session: Session, organization_id: int, user_id: int, data: SubscriptionStatusUpdate
    ) -> Subscription:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)

        new_status = (data.status or "").upper()
        valid = [s.value for s in SubscriptionStatus]
        if new_status not in valid:
            raise ValidationError(f"Invalid status. Allowed: {', '.join(valid)}")

        subscription = get_subscription(session, organization_id)
        if not subscription:
            raise SubscriptionMissing()

        old_status = subscription.status
        with atomic(session):
            subscription.status = new_status
            subscription.updated_at = datetime.utcnow()
            session.add(subscription)

        record_audit(
            session, "UPDATE_SUBSCRIPTION_STATUS", "subscription", subscription.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": old_status, "after": new_status},
        )
        session.refresh(subscription)
        return subscription

    @staticmethod
    def usage(session: Session, organization_id: int, user_id: int) -> dict:
        authorize(session, user_id, organization_id)
        subscription = _get_or_create(session, organization_id)

        active_members = count_active_members(session, organization_id)
        max_members = subscription.max_members or 0
        percentage = round(active_members / max_members * 100, 2) if max_members else 100.0

        recommendations: List[str] = []
        upgrade = _next_plan(subscription.plan)
        if percentage >= USAGE_HIGH:
            status = "HIGH"
            recommendations.append(
                f"URGENT: {active_members}/{max_members} members used. Upgrade now to keep adding members."
            )
        elif percentage >= USAGE_MEDIUM:
            status = "MEDIUM"
            recommendations.append(f"WARNING: {percentage}% of your member quota is used.")
        else:
            status = "LOW"
        if upgrade and status != "LOW":
            target = MemberLimitUtils.get_plan(upgrade)
            recommendations.append(f"Consider the {upgrade} plan (up to {target['max_members']} members).")

        return {
            "plan": subscription.plan,
            "max_members": max_members,
            "active_members": active_members,
            "current_usage": subscription.current_usage,
            "available_slots": max(0, max_members - active_members),
            "percentage": percentage,
            "status": status,
            "recommendations": recommendations,
        }

    @staticmethod
    def available_plans(session: Session, organization_id: int, user_id: int) -> List[dict]:
        authorize(session, user_id, organization_id)
        return MemberLimitUtils.available_plans()

    @staticmethod
    def change_plan(session: Session, organization_id: int, user_id: int, data: ChangePlanRequest) -> Subscription:
        """
        Upgrade or downgrade. Downgrades are refused while active members
        exceed the target plan's ceiling.
        """
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        subscription = get_subscription(session, organization_id)
        if not subscription:
            raise SubscriptionMissing()

        active_members = count_active_members(session, organization_id)
        plan = check_plan_change(subscription, data.plan, active_members)

        old_plan = subscription.plan
        now = datetime.utcnow()
        with atomic(session):
            subscription.plan = plan["name"]
            subscription.max_members = plan["max_members"]
            subscription.price = plan["price"]
            subscription.status = SubscriptionStatus.ACTIVE.value
            subscription.start_date = now
            subscription.end_date = MemberLimitUtils.calculate_end_date(plan["name"], now)
            subscription.current_usage = active_members
            subscription.updated_at = now
            session.add(subscription)

        logger.info("💳 Org %s plan changed %s -> %s", organization_id, old_plan, plan["name"])
        record_audit(
            session, "CHANGE_PLAN", "subscription", subscription.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": old_plan, "after": plan["name"], "activeMembers": active_members},
        )
        session.refresh(subscription)
        return subscription
