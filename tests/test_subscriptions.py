import pytest
from sqlmodel import select

from core.exceptions import Forbidden, PlanIncompatible, SubscriptionMissing, ValidationError
from models.models import Membership, MembershipStatus, Subscription
from schemas.subscription_schema import ChangePlanRequest, SubscriptionStatusUpdate, SubscriptionUpdate
from services.quota_service import MemberLimitUtils, UNLIMITED_MEMBERS, check_plan_change
from services.subscription_service import SubscriptionService


def set_ceiling(session, org_id, max_members):
    subscription = session.exec(select(Subscription).where(Subscription.organization_id == org_id)).one()
    subscription.max_members = max_members
    session.add(subscription)
    session.commit()


def test_plan_catalogue():
    assert MemberLimitUtils.get_plan_limits("free") == 50
    assert MemberLimitUtils.get_plan_limits("BASIC") == 200
    assert MemberLimitUtils.get_plan_limits("PREMIUM") == 500
    assert MemberLimitUtils.get_plan_limits("ENTERPRISE") == UNLIMITED_MEMBERS
    assert MemberLimitUtils.get_plan_limits("unknown") == 50
    assert MemberLimitUtils.can_organization_add_member(50, 49) is True
    assert MemberLimitUtils.can_organization_add_member(50, 50) is False
    assert [p["name"] for p in MemberLimitUtils.available_plans()] == ["FREE", "BASIC", "PREMIUM", "ENTERPRISE"]


def test_check_plan_change_rules():
    current = Subscription(organization_id=1, plan="BASIC", max_members=200)
    with pytest.raises(PlanIncompatible):
        check_plan_change(current, "BASIC", 10)
    with pytest.raises(PlanIncompatible):
        check_plan_change(current, "GOLD", 10)
    with pytest.raises(PlanIncompatible):
        check_plan_change(current, "FREE", 51)
    assert check_plan_change(current, "free", 50)["name"] == "FREE"


def test_get_returns_owner_subscription(session, org, add_member):
    member = add_member()
    subscription = SubscriptionService.get(session, org.id, member.user.id)
    assert subscription.plan == "FREE"
    assert subscription.current_usage == 2
    assert subscription.end_date > subscription.start_date


def test_get_creates_missing_free_subscription(session, org, add_member):
    add_member()
    session.delete(session.exec(select(Subscription).where(Subscription.organization_id == org.id)).one())
    session.commit()

    subscription = SubscriptionService.get(session, org.id, org.admin.id)
    assert subscription.plan == "FREE"
    assert subscription.max_members == 50
    assert subscription.current_usage == 2


def test_usage_levels(session, org, add_member):
    low = SubscriptionService.usage(session, org.id, org.admin.id)
    assert low["status"] == "LOW"
    assert low["active_members"] == 1
    assert low["available_slots"] == 49
    assert low["recommendations"] == []

    for _ in range(2):
        add_member()
    set_ceiling(session, org.id, 4)
    medium = SubscriptionService.usage(session, org.id, org.admin.id)
    assert medium["percentage"] == 75.0
    assert medium["status"] == "MEDIUM"
    assert medium["recommendations"][0].startswith("WARNING")
    assert "BASIC" in medium["recommendations"][-1]

    set_ceiling(session, org.id, 3)
    high = SubscriptionService.usage(session, org.id, org.admin.id)
    assert high["status"] == "HIGH"
    assert high["available_slots"] == 0
    assert high["recommendations"][0].startswith("URGENT")


def test_change_plan_upgrade(session, org):
    subscription = SubscriptionService.change_plan(session, org.id, org.admin.id, ChangePlanRequest(plan="PREMIUM"))
    assert subscription.plan == "PREMIUM"
    assert subscription.max_members == 500
    assert subscription.price == 15000
    assert subscription.status == "ACTIVE"
    assert subscription.current_usage == 1


def test_change_plan_refuses_same_plan_and_crowded_downgrade(session, org, add_member):
    with pytest.raises(PlanIncompatible):
        SubscriptionService.change_plan(session, org.id, org.admin.id, ChangePlanRequest(plan="FREE"))

    SubscriptionService.change_plan(session, org.id, org.admin.id, ChangePlanRequest(plan="BASIC"))
    add_member()
    add_member()

    # pretend the FREE ceiling is lower than the current headcount
    free = MemberLimitUtils.PLANS["FREE"]
    original = free["max_members"]
    free["max_members"] = 2
    try:
        with pytest.raises(PlanIncompatible):
            SubscriptionService.change_plan(session, org.id, org.admin.id, ChangePlanRequest(plan="FREE"))
    finally:
        free["max_members"] = original

    subscription = session.exec(select(Subscription).where(Subscription.organization_id == org.id)).one()
    session.refresh(subscription)
    assert subscription.plan == "BASIC"


def test_change_plan_is_admin_only(session, org, add_member):
    member = add_member()
    with pytest.raises(Forbidden):
        SubscriptionService.change_plan(session, org.id, member.user.id, ChangePlanRequest(plan="BASIC"))


def test_update_status_validates_value(session, org):
    with pytest.raises(ValidationError):
        SubscriptionService.update_status(session, org.id, org.admin.id, SubscriptionStatusUpdate(status="PAUSED"))

    subscription = SubscriptionService.update_status(
        session, org.id, org.admin.id, SubscriptionStatusUpdate(status="suspended")
    )
    assert subscription.status == "SUSPENDED"


def test_update_requires_existing_subscription(session, org):
    updated = SubscriptionService.update(session, org.id, org.admin.id, SubscriptionUpdate(currency="eur"))
    assert updated.currency == "EUR"

    session.delete(session.exec(select(Subscription).where(Subscription.organization_id == org.id)).one())
    session.commit()
    with pytest.raises(SubscriptionMissing):
        SubscriptionService.update(session, org.id, org.admin.id, SubscriptionUpdate(price=10))


def test_usage_counts_only_active_members(session, org, add_member):
    member = add_member()
    membership = session.get(Membership, member.membership.id)
    membership.status = MembershipStatus.SUSPENDED.value
    session.add(membership)
    session.commit()
    assert SubscriptionService.usage(session, org.id, org.admin.id)["active_members"] == 1
