# services/access_service.py
"""
CENTRALIZED AUTHORIZATION
=========================

Every organization-scoped operation resolves the caller's membership here.
The organization id is always the one from the route path, never from a body.
"""
import logging
from typing import Iterable, Optional, Type, TypeVar

from sqlmodel import Session, SQLModel, select

from core.exceptions import Forbidden, NotFound, Unauthorized
from models.models import Membership, MembershipRole, MembershipStatus

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

# Role sets used across services
MANAGERS = (MembershipRole.ADMIN.value, MembershipRole.FINANCIAL_MANAGER.value)
ADMIN_ONLY = (MembershipRole.ADMIN.value,)


def _role_value(role) -> str:
    return role.value if isinstance(role, MembershipRole) else str(role)


def has_role(role, required_roles: Optional[Iterable] = None) -> bool:
    """True when no role is required or `role` is one of `required_roles`."""
    required = [_role_value(r) for r in (required_roles or [])]
    if not required:
        return True
    return _role_value(role) in required


def get_active_membership(session: Session, user_id: int, organization_id: int) -> Optional[Membership]:
    return session.exec(
        select(Membership).where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
            Membership.status == MembershipStatus.ACTIVE.value,
        )
    ).first()


def authorize(
    session: Session,
    user_id: int,
    organization_id: int,
    required_roles: Optional[Iterable] = None,
) -> Membership:
    """
    Resolve the caller's ACTIVE membership in the organization.

    Raises Unauthorized when there is none and Forbidden when its role is not
    in `required_roles`.
    """
    membership = get_active_membership(session, user_id, organization_id)
    if not membership:
        logger.info("Access denied: user %s has no active membership in org %s", user_id, organization_id)
        raise Unauthorized()

    if not has_role(membership.role, required_roles):
        logger.info(
            "Access denied: user %s role %s not in %s for org %s",
            user_id, membership.role, list(required_roles or []), organization_id,
        )
        raise Forbidden()

    return membership


def require_self_or_roles(acting: Membership, membership_id: int, required_roles: Iterable = ADMIN_ONLY) -> None:
    """Member-scoped reads: the member themselves or one of `required_roles`."""
    if acting.id != membership_id and not has_role(acting.role, required_roles):
        raise Forbidden("Insufficient permissions to view this member's records")


def get_owned_or_404(
    session: Session,
    model: Type[ModelT],
    object_id: int,
    organization_id: int,
    label: Optional[str] = None,
) -> ModelT:
    """Fetch a row by id and make sure it belongs to the organization."""
    obj = session.get(model, object_id)
    if not obj or getattr(obj, "organization_id", None) != organization_id:
        raise NotFound(f"{label or model.__name__} not found in this organization")
    return obj
