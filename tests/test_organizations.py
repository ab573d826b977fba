import pytest
from sqlmodel import select

from core.exceptions import Forbidden, ValidationError
from models.models import AuditLog, Membership, MembershipRole, OrganizationSettings, Subscription
from schemas.organization_schema import OrganizationCreate, OrganizationSettingsUpdate, OrganizationUpdate
from services.organization_service import OrganizationService


def test_create_sets_up_everything(session, make_user):
    owner = make_user()
    organization = OrganizationService.create(
        session, owner.id, OrganizationCreate(name="  Market Women  ", currency="ghs", type="TONTINE")
    )
    assert organization.name == "Market Women"
    assert organization.currency == "GHS"
    assert organization.type == "TONTINE"
    assert organization.owner_id == owner.id

    settings = session.exec(
        select(OrganizationSettings).where(OrganizationSettings.organization_id == organization.id)
    ).one()
    assert settings.allow_partial_payments is False

    subscription = session.exec(select(Subscription).where(Subscription.organization_id == organization.id)).one()
    assert (subscription.plan, subscription.current_usage, subscription.currency) == ("FREE", 1, "GHS")

    membership = session.exec(select(Membership).where(Membership.organization_id == organization.id)).one()
    assert membership.user_id == owner.id
    assert membership.role == "ADMIN"

    assert session.exec(select(AuditLog).where(AuditLog.action == "CREATE_ORGANIZATION")).one()


def test_get_with_counts(session, org, add_member):
    add_member()
    data = OrganizationService.get(session, org.id, org.admin.id)
    assert data["member_count"] == 2
    assert data["plan_count"] == 0
    assert data["settings"]["reminder_days"] == [1, 3, 7]


def test_list_and_search_for_user(session, org, make_user, add_member):
    member = add_member()
    other_owner = make_user()
    OrganizationService.create(session, other_owner.id, OrganizationCreate(name="Unrelated Club"))

    mine = OrganizationService.list_for_user(session, member.user.id)
    assert [(o["name"], o["role"]) for o in mine] == [("Savings Circle", "MEMBER")]

    assert [o["name"] for o in OrganizationService.search(session, org.admin.id, "circle")] == ["Savings Circle"]
    assert OrganizationService.search(session, org.admin.id, "club") == []
    with pytest.raises(ValidationError):
        OrganizationService.search(session, org.admin.id, "c")


def test_update_and_settings(session, org, add_member):
    updated = OrganizationService.update(
        session, org.id, org.admin.id, OrganizationUpdate(description="Weekly savers", currency="eur")
    )
    assert updated.description == "Weekly savers"
    assert updated.currency == "EUR"

    settings = OrganizationService.update_settings(
        session, org.id, org.admin.id,
        OrganizationSettingsUpdate(allow_partial_payments=True, reminder_days=[7, 1, 7]),
    )
    assert settings["allow_partial_payments"] is True
    assert settings["reminder_days"] == [1, 7]

    manager = add_member(MembershipRole.FINANCIAL_MANAGER)
    with pytest.raises(Forbidden):
        OrganizationService.update(session, org.id, manager.user.id, OrganizationUpdate(name="Hijacked"))


def test_only_owner_can_deactivate(session, org, add_member):
    co_admin = add_member(MembershipRole.ADMIN)
    with pytest.raises(Forbidden):
        OrganizationService.deactivate(session, org.id, co_admin.user.id)

    organization = OrganizationService.deactivate(session, org.id, org.admin.id)
    assert organization.is_active is False
    assert OrganizationService.list_for_user(session, org.admin.id) == []


def test_stats(session, org, add_member):
    add_member()
    stats = OrganizationService.stats(session, org.id, org.admin.id)
    assert stats == {
        "organization_id": org.id,
        "active_members": 2,
        "active_plans": 0,
        "total_contributions": 0,
        "pending_contributions": 0,
        "active_debt_balance": 0.0,
        "transactions_last_30_days": 0,
    }
