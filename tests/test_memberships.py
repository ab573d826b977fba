import pytest
from pydantic import ValidationError as PayloadError
from sqlmodel import select

from core.exceptions import Forbidden, NotFound, QuotaExceeded, SubscriptionMissing, ValidationError
from models.models import Membership, MembershipRole, MembershipStatus, Subscription
from schemas.debt_schema import DebtCreate
from schemas.membership_schema import MembershipCreate, MembershipRoleUpdate, MembershipStatusUpdate
from services.debt_service import DebtService
from services.membership_service import MembershipService


def subscription_for(session, org_id):
    subscription = session.exec(select(Subscription).where(Subscription.organization_id == org_id)).first()
    session.refresh(subscription)
    return subscription


def test_owner_counts_as_first_member(session, org):
    subscription = subscription_for(session, org.id)
    assert subscription.plan == "FREE"
    assert subscription.max_members == 50
    assert subscription.current_usage == 1
    assert org.admin_membership.role == "ADMIN"
    assert org.admin_membership.member_number == f"MBR{org.id:04d}001"


def test_create_membership_increments_usage_by_one(session, org, make_user):
    user = make_user()
    membership = MembershipService.create(
        session, org.id, org.admin.id, MembershipCreate(email=user.email, role=MembershipRole.FINANCIAL_MANAGER)
    )
    assert membership.user_id == user.id
    assert membership.role == "FINANCIAL_MANAGER"
    assert membership.status == "ACTIVE"
    assert membership.member_number == f"MBR{org.id:04d}002"
    assert subscription_for(session, org.id).current_usage == 2


def test_quota_exceeded_leaves_state_unchanged(session, org, add_member, make_user):
    add_member()
    subscription = subscription_for(session, org.id)
    subscription.max_members = 2
    session.add(subscription)
    session.commit()
    assert subscription.current_usage == 2

    newcomer = make_user()
    with pytest.raises(QuotaExceeded):
        MembershipService.create(session, org.id, org.admin.id, MembershipCreate(phone=newcomer.phone))

    assert subscription_for(session, org.id).current_usage == 2
    assert session.exec(select(Membership).where(Membership.user_id == newcomer.id)).first() is None


def test_subscription_missing(session, org, make_user):
    session.delete(subscription_for(session, org.id))
    session.commit()
    with pytest.raises(SubscriptionMissing):
        MembershipService.create(session, org.id, org.admin.id, MembershipCreate(phone=make_user().phone))


def test_user_must_exist(session, org):
    with pytest.raises(NotFound):
        MembershipService.create(session, org.id, org.admin.id, MembershipCreate(email="ghost@example.com"))


def test_at_most_one_membership_per_org(session, org, add_member):
    member = add_member()
    with pytest.raises(ValidationError):
        MembershipService.create(session, org.id, org.admin.id, MembershipCreate(phone=member.user.phone))


def test_members_cannot_add_members(session, org, add_member, make_user):
    member = add_member()
    with pytest.raises(Forbidden):
        MembershipService.create(session, org.id, member.user.id, MembershipCreate(phone=make_user().phone))


def test_phone_or_email_required():
    with pytest.raises(PayloadError):
        MembershipCreate(role=MembershipRole.MEMBER)


def test_status_changes_move_usage(session, org, add_member):
    member = add_member()
    assert subscription_for(session, org.id).current_usage == 2

    MembershipService.update_status(
        session, org.id, org.admin.id, member.membership.id, MembershipStatusUpdate(status=MembershipStatus.INACTIVE)
    )
    assert subscription_for(session, org.id).current_usage == 1

    MembershipService.update_status(
        session, org.id, org.admin.id, member.membership.id, MembershipStatusUpdate(status=MembershipStatus.ACTIVE)
    )
    assert subscription_for(session, org.id).current_usage == 2


def test_admin_cannot_change_own_role_or_remove_self(session, org):
    with pytest.raises(ValidationError):
        MembershipService.update_role(
            session, org.id, org.admin.id, org.admin_membership.id,
            MembershipRoleUpdate(role=MembershipRole.MEMBER),
        )
    with pytest.raises(ValidationError):
        MembershipService.delete(session, org.id, org.admin.id, org.admin_membership.id)


def test_update_role_is_admin_only(session, org, add_member):
    manager = add_member(MembershipRole.FINANCIAL_MANAGER)
    member = add_member()
    with pytest.raises(Forbidden):
        MembershipService.update_role(
            session, org.id, manager.user.id, member.membership.id,
            MembershipRoleUpdate(role=MembershipRole.ADMIN),
        )
    updated = MembershipService.update_role(
        session, org.id, org.admin.id, member.membership.id, MembershipRoleUpdate(role=MembershipRole.ADMIN)
    )
    assert updated.role == "ADMIN"


def test_delete_decrements_usage(session, org, add_member):
    member = add_member()
    membership_id = member.membership.id
    MembershipService.delete(session, org.id, org.admin.id, membership_id)
    assert subscription_for(session, org.id).current_usage == 1
    assert session.get(Membership, membership_id) is None


def test_delete_refused_when_member_has_ledger_records(session, org, add_member):
    member = add_member()
    DebtService.create(
        session, org.id, org.admin.id, DebtCreate(membership_id=member.membership.id, title="Loan", amount=100)
    )
    with pytest.raises(ValidationError):
        MembershipService.delete(session, org.id, org.admin.id, member.membership.id)


def test_list_filters_and_search(session, org, add_member, make_user):
    add_member(MembershipRole.FINANCIAL_MANAGER, user=make_user(full_name="Awa Treasurer"))
    add_member(user=make_user(full_name="Moussa"))

    page = MembershipService.list(session, org.id, org.admin.id, role="FINANCIAL_MANAGER")
    assert page["total"] == 1
    assert page["items"][0]["user"]["full_name"] == "Awa Treasurer"

    page = MembershipService.list(session, org.id, org.admin.id, search="mous")
    assert [m["user"]["full_name"] for m in page["items"]] == ["Moussa"]

    page = MembershipService.list(session, org.id, org.admin.id, page=1, limit=2)
    assert page["total"] == 3
    assert page["pages"] == 2
    assert len(page["items"]) == 2
