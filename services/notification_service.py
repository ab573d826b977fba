# services/notification_service.py
"""
Notification sink: in-app Notification rows plus an optional confirmation email.

Everything here is best-effort. Failures are logged, never raised.
"""
import logging
from typing import Callable, Optional

from sqlmodel import Session, select

from models.models import (
    Contribution,
    ContributionPlan,
    Membership,
    Notification,
    NotificationType,
    Organization,
    OrganizationSettings,
    User,
)
from services.email_service import email_service

logger = logging.getLogger(__name__)

# dispatch(fn, *args): FastAPI's BackgroundTasks.add_task has this shape
Dispatcher = Callable[..., None]


def _run_now(fn, *args, **kwargs) -> None:
    fn(*args, **kwargs)


def notify(
    session: Session,
    organization_id: int,
    membership_id: Optional[int],
    type: str,
    title: str,
    message: str,
    priority: str = "MEDIUM",
) -> Optional[Notification]:
    try:
        notification = Notification(
            organization_id=organization_id,
            membership_id=membership_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
        )
        session.add(notification)
        session.commit()
        return notification
    except Exception:
        session.rollback()
        logger.exception("❌ Failed to record notification for membership %s", membership_id)
        return None


def send_payment_notification(
    session: Session,
    contribution: Contribution,
    amount: float,
    dispatch: Optional[Dispatcher] = None,
) -> None:
    """In-app confirmation, then an email when the organization has them enabled."""
    try:
        plan = session.get(ContributionPlan, contribution.contribution_plan_id)
        organization = session.get(Organization, contribution.organization_id)
        plan_name = plan.name if plan else "contribution"
        currency = organization.currency if organization else ""

        notify(
            session,
            organization_id=contribution.organization_id,
            membership_id=contribution.membership_id,
            type=NotificationType.PAYMENT_CONFIRMATION.value,
            title="Payment confirmed",
            message=f'Payment of {amount} {currency} for "{plan_name}"',
        )

        settings = session.exec(
            select(OrganizationSettings).where(OrganizationSettings.organization_id == contribution.organization_id)
        ).first()
        if settings and not settings.email_notifications:
            return

        membership = session.get(Membership, contribution.membership_id)
        user = session.get(User, membership.user_id) if membership else None
        if not user or not user.email:
            return

        (dispatch or _run_now)(
            email_service.send_payment_confirmation,
            user.email,
            user.full_name,
            amount,
            currency,
            plan_name,
            organization.name if organization else "",
        )
    except Exception:
        logger.exception("❌ Payment notification failed for contribution %s", contribution.id)
