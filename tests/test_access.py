import pytest

from core.exceptions import Forbidden, NotFound, Unauthorized
from models.models import Contribution, MembershipRole, MembershipStatus
from schemas.membership_schema import MembershipStatusUpdate
from services.access_service import (
    ADMIN_ONLY,
    MANAGERS,
    authorize,
    get_owned_or_404,
    has_role,
    require_self_or_roles,
)
from services.membership_service import MembershipService


def test_has_role_predicate():
    assert has_role("MEMBER") is True
    assert has_role("MEMBER", []) is True
    assert has_role(MembershipRole.ADMIN, MANAGERS) is True
    assert has_role("FINANCIAL_MANAGER", MANAGERS) is True
    assert has_role("MEMBER", MANAGERS) is False
    assert has_role("FINANCIAL_MANAGER", ADMIN_ONLY) is False


def test_authorize_returns_active_membership(session, org):
    membership = authorize(session, org.admin.id, org.id, ADMIN_ONLY)
    assert membership.role == "ADMIN"
    assert membership.organization_id == org.id


def test_authorize_rejects_outsiders(session, org, make_user):
    outsider = make_user()
    with pytest.raises(Unauthorized) as exc:
        authorize(session, outsider.id, org.id)
    assert exc.value.kind == "Unauthorized"


def test_authorize_role_mismatch_is_forbidden(session, org, add_member):
    member = add_member(MembershipRole.MEMBER)
    with pytest.raises(Forbidden) as exc:
        authorize(session, member.user.id, org.id, MANAGERS)
    assert exc.value.kind == "Forbidden"
    assert exc.value.status_code == 403


def test_inactive_membership_is_unauthorized(session, org, add_member):
    member = add_member()
    MembershipService.update_status(
        session, org.id, org.admin.id, member.membership.id,
        MembershipStatusUpdate(status=MembershipStatus.SUSPENDED),
    )
    with pytest.raises(Unauthorized):
        authorize(session, member.user.id, org.id)


def test_membership_in_another_org_does_not_leak(session, org, make_user):
    from schemas.organization_schema import OrganizationCreate
    from services.organization_service import OrganizationService

    other_owner = make_user()
    OrganizationService.create(session, other_owner.id, OrganizationCreate(name="Other Club"))
    with pytest.raises(Unauthorized):
        authorize(session, other_owner.id, org.id)


def test_self_or_admin(session, org, add_member):
    alice = add_member()
    bob = add_member()
    require_self_or_roles(alice.membership, alice.membership.id)
    require_self_or_roles(org.admin_membership, alice.membership.id)
    with pytest.raises(Forbidden):
        require_self_or_roles(bob.membership, alice.membership.id)


def test_get_owned_or_404_checks_tenant(session, org):
    with pytest.raises(NotFound):
        get_owned_or_404(session, Contribution, 12345, org.id)
