# routes/contributions.py
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlmodel import Session
from typing import Optional

from core.database import get_session
from core.security import get_current_user
from models.models import ContributionStatus, User
from schemas.common_schema import Page
from schemas.contribution_schema import ContributionDetail, ContributionRead, PaymentRequest
from services.contribution_service import ContributionService

router = APIRouter(prefix="/organizations/{organization_id}/contributions", tags=["Contributions"])


@router.get("/", response_model=Page[ContributionRead])
def list_contributions(
    organization_id: int,
    status: Optional[ContributionStatus] = None,
    membership_id: Optional[int] = None,
    plan_id: Optional[int] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionService.list(
        session,
        organization_id,
        current_user.id,
        status=status.value if status else None,
        membership_id=membership_id,
        plan_id=plan_id,
        due_from=due_from,
        due_to=due_to,
        page=page,
        limit=limit,
    )


@router.get("/member/{membership_id}")
def list_member_contributions(
    organization_id: int,
    membership_id: int,
    status: Optional[ContributionStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """A member's contributions with totals (self or ADMIN)."""
    return ContributionService.list_by_member(
        session,
        organization_id,
        current_user.id,
        membership_id,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )


@router.get("/{contribution_id}", response_model=ContributionDetail)
def get_contribution(
    organization_id: int,
    contribution_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionService.get(session, organization_id, current_user.id, contribution_id)


# ==================================================================
#  ✅ PAYMENTS
# ==================================================================
@router.post("/{contribution_id}/pay")
def mark_contribution_paid(
    organization_id: int,
    contribution_id: int,
    data: PaymentRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Settle the exact remaining amount. The confirmation email is sent in the background."""
    return ContributionService.mark_paid(
        session, organization_id, current_user.id, contribution_id, data, dispatch=background_tasks.add_task
    )


@router.post("/{contribution_id}/partial-payments", status_code=201)
def add_partial_payment(
    organization_id: int,
    contribution_id: int,
    data: PaymentRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionService.add_partial_payment(session, organization_id, current_user.id, contribution_id, data)
