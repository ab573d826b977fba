# routes/contribution_plans.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from core.database import get_session
from core.security import get_current_user
from models.models import User
from schemas.common_schema import MessageResponse, Page
from schemas.contribution_plan_schema import (
    AssignPlanRequest,
    ContributionPlanCreate,
    ContributionPlanRead,
    ContributionPlanUpdate,
    GenerateContributionsRequest,
    GenerateContributionsResult,
)
from schemas.contribution_schema import ContributionRead
from services.contribution_plan_service import ContributionPlanService
from services.contribution_service import contribution_to_dict

router = APIRouter(prefix="/organizations/{organization_id}/contribution-plans", tags=["Contribution Plans"])


# ==================================================================
#  ✅ CRUD
# ==================================================================
@router.post("/", response_model=ContributionPlanRead, status_code=201)
def create_plan(
    organization_id: int,
    data: ContributionPlanCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.create(session, organization_id, current_user.id, data)


@router.get("/", response_model=Page[ContributionPlanRead])
def list_plans(
    organization_id: int,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.list(
        session, organization_id, current_user.id, is_active=is_active, search=search, page=page, limit=limit
    )


@router.get("/{plan_id}", response_model=ContributionPlanRead)
def get_plan(
    organization_id: int,
    plan_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.get(session, organization_id, current_user.id, plan_id)


@router.put("/{plan_id}", response_model=ContributionPlanRead)
def update_plan(
    organization_id: int,
    plan_id: int,
    data: ContributionPlanUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.update(session, organization_id, current_user.id, plan_id, data)


@router.patch("/{plan_id}/toggle", response_model=ContributionPlanRead)
def toggle_plan(
    organization_id: int,
    plan_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.toggle_active(session, organization_id, current_user.id, plan_id)


@router.delete("/{plan_id}", response_model=MessageResponse)
def delete_plan(
    organization_id: int,
    plan_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return ContributionPlanService.delete(session, organization_id, current_user.id, plan_id)


# ==================================================================
#  ✅ GENERATION
# ==================================================================
@router.post("/{plan_id}/generate", response_model=GenerateContributionsResult)
def generate_contributions(
    organization_id: int,
    plan_id: int,
    data: Optional[GenerateContributionsRequest] = None,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create this period's contribution for every active member."""
    data = data or GenerateContributionsRequest()
    return ContributionPlanService.generate_contributions_for_plan(
        session,
        organization_id,
        plan_id,
        current_user.id,
        force=data.force,
        due_date_offset=data.due_date_offset,
    )


@router.post("/{plan_id}/assign", response_model=ContributionRead, status_code=201)
def assign_plan(
    organization_id: int,
    plan_id: int,
    data: AssignPlanRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    contribution = ContributionPlanService.assign_plan_to_member(
        session,
        organization_id,
        plan_id,
        data.membership_id,
        current_user.id,
        due_date_offset=data.due_date_offset,
    )
    return contribution_to_dict(contribution)
