# services/membership_service.py
"""
Membership lifecycle.

Creation is gated by the subscription quota; ACTIVE memberships are what the
quota counts, so every status transition in or out of ACTIVE also moves
subscription.current_usage.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from core.exceptions import NotFound, ValidationError
from models.models import (
    Contribution,
    Debt,
    Membership,
    MembershipStatus,
    Organization,
    Transaction,
    User,
)
from schemas.membership_schema import (
    MembershipCreate,
    MembershipRoleUpdate,
    MembershipStatusUpdate,
    MembershipUpdate,
)
from services.access_service import ADMIN_ONLY, MANAGERS, authorize, get_owned_or_404
from services.audit_service import record_audit
from services.ledger_service import atomic
from services.pagination import paginate
from services.quota_service import adjust_usage, check_member_quota

logger = logging.getLogger(__name__)


def mint_member_number(session: Session, organization: Organization) -> str:
    """MBR + zero-padded org id + zero-padded per-org counter. Caller commits."""
    organization.member_counter = (organization.member_counter or 0) + 1
    session.add(organization)
    return f"MBR{organization.id:04d}{organization.member_counter:03d}"


def membership_to_dict(membership: Membership) -> dict:
    user = membership.user
    return {
        "id": membership.id,
        "user_id": membership.user_id,
        "organization_id": membership.organization_id,
        "role": membership.role,
        "status": membership.status,
        "member_number": membership.member_number,
        "joined_at": membership.joined_at,
        "created_at": membership.created_at,
        "user": {
            "id": user.id,
            "full_name": user.full_name,
            "email": user.email,
            "phone": user.phone,
            "is_active": user.is_active,
            "created_at": user.created_at,
        } if user else None,
    }


def find_user(session: Session, phone: Optional[str] = None, email: Optional[str] = None) -> Optional[User]:
    if phone:
        user = session.exec(select(User).where(User.phone == phone)).first()
        if user:
            return user
    if email:
        return session.exec(select(User).where(func.lower(User.email) == email.lower())).first()
    return None


class MembershipService:

    # ============================================================
    # ✅ CREATE
    # ============================================================
    @staticmethod
    def create(session: Session, organization_id: int, user_id: int, data: MembershipCreate) -> Membership:
        actor = authorize(session, user_id, organization_id, MANAGERS)

        check_member_quota(session, organization_id)

        user = find_user(session, phone=data.phone, email=data.email)
        if not user:
            raise NotFound("No user found with this phone or email")

        existing = session.exec(
            select(Membership).where(
                Membership.user_id == user.id,
                Membership.organization_id == organization_id,
            )
        ).first()
        if existing:
            raise ValidationError("This user is already a member of the organization")

        duplicate = ValidationError("This user is already a member of the organization")
        with atomic(session, on_integrity_error=duplicate):
            organization = session.get(Organization, organization_id)
            membership = Membership(
                user_id=user.id,
                organization_id=organization_id,
                role=data.role.value,
                status=MembershipStatus.ACTIVE.value,
                member_number=mint_member_number(session, organization),
            )
            session.add(membership)
            adjust_usage(session, organization_id, +1)

        session.refresh(membership)
        logger.info("👤 Membership %s created in org %s for user %s", membership.id, organization_id, user.id)

        record_audit(
            session, "CREATE_MEMBERSHIP", "membership", membership.id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"userId": user.id, "role": membership.role, "memberNumber": membership.member_number},
        )
        return membership

    # ============================================================
    # ✅ READ
    # ============================================================
    @staticmethod
    def get(session: Session, organization_id: int, user_id: int, membership_id: int) -> Membership:
        authorize(session, user_id, organization_id)
        return get_owned_or_404(session, Membership, membership_id, organization_id, "Member")

    @staticmethod
    def list(
        session: Session,
        organization_id: int,
        user_id: int,
        status: Optional[str] = None,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        authorize(session, user_id, organization_id)

        statement = (
            select(Membership)
            .join(User, User.id == Membership.user_id)
            .where(Membership.organization_id == organization_id)
        )
        if status:
            statement = statement.where(Membership.status == status)
        if role:
            statement = statement.where(Membership.role == role)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(
                    User.full_name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.phone.ilike(pattern),
                    Membership.member_number.ilike(pattern),
                )
            )
        statement = statement.order_by(Membership.joined_at.desc())
        return paginate(session, statement, page, limit, serialize=membership_to_dict)

    # ============================================================
    # ✅ UPDATE
    # ============================================================
    @staticmethod
    def update(
        session: Session, organization_id: int, user_id: int, membership_id: int, data: MembershipUpdate
    ) -> Membership:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        membership = get_owned_or_404(session, Membership, membership_id, organization_id, "Member")

        changes = data.model_dump(exclude_unset=True)
        with atomic(session, on_integrity_error=ValidationError("Member number already in use")):
            for field, value in changes.items():
                setattr(membership, field, value)
            membership.updated_at = datetime.utcnow()
            session.add(membership)

        record_audit(
            session, "UPDATE_MEMBERSHIP", "membership", membership_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id, details=changes,
        )
        session.refresh(membership)
        return membership

    @staticmethod
    def update_status(
        session: Session, organization_id: int, user_id: int, membership_id: int, data: MembershipStatusUpdate
    ) -> Membership:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        membership = get_owned_or_404(session, Membership, membership_id, organization_id, "Member")

        if membership.id == actor.id:
            raise ValidationError("You cannot change your own status")

        old_status = membership.status
        new_status = data.status.value
        if old_status == new_status:
            return membership

        # Reactivation takes a quota slot
        if new_status == MembershipStatus.ACTIVE.value:
            check_member_quota(session, organization_id)

        with atomic(session):
            membership.status = new_status
            membership.updated_at = datetime.utcnow()
            session.add(membership)
            if new_status == MembershipStatus.ACTIVE.value:
                adjust_usage(session, organization_id, +1)
            elif old_status == MembershipStatus.ACTIVE.value:
                adjust_usage(session, organization_id, -1)

        logger.info("👤 Membership %s status %s -> %s", membership_id, old_status, new_status)
        record_audit(
            session, "UPDATE_MEMBERSHIP_STATUS", "membership", membership_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": old_status, "after": new_status},
        )
        session.refresh(membership)
        return membership

    @staticmethod
    def update_role(
        session: Session, organization_id: int, user_id: int, membership_id: int, data: MembershipRoleUpdate
    ) -> Membership:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        membership = get_owned_or_404(session, Membership, membership_id, organization_id, "Member")

        if membership.id == actor.id:
            raise ValidationError("You cannot change your own role")

        old_role = membership.role
        with atomic(session):
            membership.role = data.role.value
            membership.updated_at = datetime.utcnow()
            session.add(membership)

        record_audit(
            session, "UPDATE_MEMBERSHIP_ROLE", "membership", membership_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": old_role, "after": data.role.value},
        )
        session.refresh(membership)
        return membership

    # ============================================================
    # ✅ DELETE
    # ============================================================
    @staticmethod
    def delete(session: Session, organization_id: int, user_id: int, membership_id: int) -> dict:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        membership = get_owned_or_404(session, Membership, membership_id, organization_id, "Member")

        if membership.id == actor.id:
            raise ValidationError("You cannot remove yourself from the organization")

        # Ledger rows reference the membership; those members are deactivated instead
        for model in (Contribution, Debt, Transaction):
            referenced = session.exec(
                select(model.id).where(model.membership_id == membership_id).limit(1)
            ).first()
            if referenced is not None:
                raise ValidationError(
                    "This member has financial records. Set the status to INACTIVE instead of deleting."
                )

        snapshot = {"userId": membership.user_id, "role": membership.role, "status": membership.status}
        was_active = membership.status == MembershipStatus.ACTIVE.value
        with atomic(session):
            session.delete(membership)
            if was_active:
                adjust_usage(session, organization_id, -1)

        logger.info("🗑️ Membership %s removed from org %s", membership_id, organization_id)
        record_audit(
            session, "DELETE_MEMBERSHIP", "membership", membership_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details=snapshot,
        )
        return {"success": True, "message": "Member removed successfully"}
