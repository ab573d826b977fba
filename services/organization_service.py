# services/organization_service.py
import json
import logging
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import func
from sqlmodel import Session, select

from core.exceptions import Forbidden, NotFound, ValidationError
from models.models import (
    ContributionPlan,
    Contribution,
    ContributionStatus,
    Debt,
    DebtStatus,
    Membership,
    MembershipRole,
    MembershipStatus,
    Organization,
    OrganizationSettings,
    PlanName,
    Subscription,
    SubscriptionStatus,
    Transaction,
)
from schemas.organization_schema import OrganizationCreate, OrganizationSettingsUpdate, OrganizationUpdate
from services.access_service import ADMIN_ONLY, authorize
from services.audit_service import record_audit
from services.ledger_service import atomic
from services.membership_service import mint_member_number
from services.quota_service import MemberLimitUtils

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
STATS_TRANSACTION_WINDOW_DAYS = 30


def settings_to_dict(settings: OrganizationSettings) -> dict:
    return {
        "allow_partial_payments": settings.allow_partial_payments,
        "auto_reminders": settings.auto_reminders,
        "reminder_days": settings.reminder_days_list,
        "email_notifications": settings.email_notifications,
        "session_timeout": settings.session_timeout,
    }


def organization_to_dict(organization: Organization) -> dict:
    return {
        "id": organization.id,
        "name": organization.name,
        "description": organization.description,
        "type": organization.type,
        "currency": organization.currency,
        "owner_id": organization.owner_id,
        "is_active": organization.is_active,
        "created_at": organization.created_at,
    }


def _get_organization(session: Session, organization_id: int) -> Organization:
    organization = session.get(Organization, organization_id)
    if not organization:
        raise NotFound("Organization not found")
    return organization


def _get_settings(session: Session, organization_id: int) -> OrganizationSettings:
    settings = session.exec(
        select(OrganizationSettings).where(OrganizationSettings.organization_id == organization_id)
    ).first()
    if not settings:
        settings = OrganizationSettings(organization_id=organization_id)
        session.add(settings)
    return settings


class OrganizationService:
    """Tenant lifecycle: creation with owner + FREE plan, settings, stats."""

    # ============================================================
    # ✅ CREATE (organization + settings + FREE subscription + owner)
    # ============================================================
    @staticmethod
    def create(session: Session, user_id: int, data: OrganizationCreate) -> Organization:
        free_plan = MemberLimitUtils.get_plan(PlanName.FREE.value)
        now = datetime.utcnow()

        with atomic(session):
            organization = Organization(
                name=data.name.strip(),
                description=data.description,
                type=data.type.value,
                currency=data.currency,
                owner_id=user_id,
            )
            session.add(organization)
            session.flush()  # Get organization ID

            session.add(OrganizationSettings(organization_id=organization.id))
            session.add(
                Subscription(
                    organization_id=organization.id,
                    plan=PlanName.FREE.value,
                    status=SubscriptionStatus.ACTIVE.value,
                    start_date=now,
                    end_date=MemberLimitUtils.calculate_end_date(PlanName.FREE.value, now),
                    max_members=free_plan["max_members"],
                    current_usage=1,
                    price=free_plan["price"],
                    currency=data.currency,
                )
            )
            owner = Membership(
                user_id=user_id,
                organization_id=organization.id,
                role=MembershipRole.ADMIN.value,
                status=MembershipStatus.ACTIVE.value,
                member_number=mint_member_number(session, organization),
            )
            session.add(owner)

        session.refresh(organization)
        logger.info("🏢 Organization %s created by user %s", organization.id, user_id)

        record_audit(
            session, "CREATE_ORGANIZATION", "organization", organization.id,
            user_id=user_id, organization_id=organization.id, membership_id=owner.id,
            details={"name": organization.name, "type": organization.type},
        )
        return organization

    # ============================================================
    # ✅ READ
    # ============================================================
    @staticmethod
    def get(session: Session, organization_id: int, user_id: int) -> dict:
        authorize(session, user_id, organization_id)
        organization = _get_organization(session, organization_id)

        member_count = session.exec(
            select(func.count(Membership.id)).where(
                Membership.organization_id == organization_id,
                Membership.status == MembershipStatus.ACTIVE.value,
            )
        ).one()
        plan_count = session.exec(
            select(func.count(ContributionPlan.id)).where(ContributionPlan.organization_id == organization_id)
        ).one()
        settings = session.exec(
            select(OrganizationSettings).where(OrganizationSettings.organization_id == organization_id)
        ).first()

        return {
            **organization_to_dict(organization),
            "member_count": member_count,
            "plan_count": plan_count,
            "settings": settings_to_dict(settings) if settings else None,
        }

    @staticmethod
    def list_for_user(session: Session, user_id: int) -> List[dict]:
        """Organizations where the user holds an ACTIVE membership, with their role."""
        rows = session.exec(
            select(Organization, Membership)
            .join(Membership, Membership.organization_id == Organization.id)
            .where(
                Membership.user_id == user_id,
                Membership.status == MembershipStatus.ACTIVE.value,
                Organization.is_active == True,  # noqa: E712
            )
            .order_by(Organization.created_at.desc())
        ).all()
        return [
            {**organization_to_dict(org), "role": m.role, "member_number": m.member_number}
            for org, m in rows
        ]

    @staticmethod
    def search(session: Session, user_id: int, query: str) -> List[dict]:
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            raise ValidationError(f"Search query must be at least {SEARCH_MIN_LENGTH} characters")

        pattern = f"%{query}%"
        rows = session.exec(
            select(Organization, Membership)
            .join(Membership, Membership.organization_id == Organization.id)
            .where(
                Membership.user_id == user_id,
                Membership.status == MembershipStatus.ACTIVE.value,
                Organization.is_active == True,  # noqa: E712
                (Organization.name.ilike(pattern)) | (Organization.description.ilike(pattern)),
            )
            .order_by(Organization.name)
        ).all()
        return [
            {**organization_to_dict(org), "role": m.role, "member_number": m.member_number}
            for org, m in rows
        ]

    # ============================================================
    # ✅ UPDATE
    # ============================================================
    @staticmethod
    def update(session: Session, organization_id: int, user_id: int, data: OrganizationUpdate) -> Organization:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        organization = _get_organization(session, organization_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "type" in changes:
            changes["type"] = changes["type"].value
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()

        before = {field: getattr(organization, field) for field in changes}
        with atomic(session):
            for field, value in changes.items():
                setattr(organization, field, value)
            organization.updated_at = datetime.utcnow()
            session.add(organization)

        record_audit(
            session, "UPDATE_ORGANIZATION", "organization", organization_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": before, "after": changes},
        )
        session.refresh(organization)
        return organization

    @staticmethod
    def update_settings(
        session: Session, organization_id: int, user_id: int, data: OrganizationSettingsUpdate
    ) -> dict:
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        _get_organization(session, organization_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        with atomic(session):
            settings = _get_settings(session, organization_id)
            before = settings_to_dict(settings) if settings.id else None
            for field, value in changes.items():
                if field == "reminder_days":
                    value = json.dumps(sorted(set(value)))
                setattr(settings, field, value)
            session.add(settings)

        session.refresh(settings)
        record_audit(
            session, "UPDATE_ORGANIZATION_SETTINGS", "organization", organization_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
            details={"before": before, "after": changes},
        )
        return settings_to_dict(settings)

    @staticmethod
    def deactivate(session: Session, organization_id: int, user_id: int) -> Organization:
        """Soft delete. Only the owner can do this."""
        actor = authorize(session, user_id, organization_id, ADMIN_ONLY)
        organization = _get_organization(session, organization_id)

        if organization.owner_id != user_id:
            raise Forbidden("Only the owner can deactivate the organization")

        with atomic(session):
            organization.is_active = False
            organization.updated_at = datetime.utcnow()
            session.add(organization)

        logger.info("🏢 Organization %s deactivated by owner %s", organization_id, user_id)
        record_audit(
            session, "DEACTIVATE_ORGANIZATION", "organization", organization_id,
            user_id=user_id, organization_id=organization_id, membership_id=actor.id,
        )
        session.refresh(organization)
        return organization

    # ============================================================
    # ✅ STATS
    # ============================================================
    @staticmethod
    def stats(session: Session, organization_id: int, user_id: int) -> dict:
        authorize(session, user_id, organization_id)

        def count(model, *where) -> int:
            return session.exec(select(func.count(model.id)).where(*where)).one()

        since = datetime.utcnow() - timedelta(days=STATS_TRANSACTION_WINDOW_DAYS)
        active_debt_balance = session.exec(
            select(func.coalesce(func.sum(Debt.remaining_amount), 0.0)).where(
                Debt.organization_id == organization_id,
                Debt.status.in_([DebtStatus.ACTIVE.value, DebtStatus.PARTIALLY_PAID.value, DebtStatus.OVERDUE.value]),
            )
        ).one()

        return {
            "organization_id": organization_id,
            "active_members": count(
                Membership,
                Membership.organization_id == organization_id,
                Membership.status == MembershipStatus.ACTIVE.value,
            ),
            "active_plans": count(
                ContributionPlan,
                ContributionPlan.organization_id == organization_id,
                ContributionPlan.is_active == True,  # noqa: E712
            ),
            "total_contributions": count(Contribution, Contribution.organization_id == organization_id),
            "pending_contributions": count(
                Contribution,
                Contribution.organization_id == organization_id,
                Contribution.status.in_([ContributionStatus.PENDING.value, ContributionStatus.PARTIAL.value]),
            ),
            "active_debt_balance": round(float(active_debt_balance or 0), 2),
            "transactions_last_30_days": count(
                Transaction,
                Transaction.organization_id == organization_id,
                Transaction.created_at >= since,
            ),
        }
