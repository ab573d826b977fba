# routes/subscriptions.py
from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import List

from core.database import get_session
from core.security import get_current_user
from models.models import User
from schemas.subscription_schema import (
    ChangePlanRequest,
    PlanRead,
    SubscriptionRead,
    SubscriptionStatusUpdate,
    SubscriptionUpdate,
    UsageRead,
)
from services.subscription_service import SubscriptionService

router = APIRouter(prefix="/organizations/{organization_id}/subscription", tags=["Subscription"])


@router.get("/", response_model=SubscriptionRead)
def get_subscription(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return SubscriptionService.get(session, organization_id, current_user.id)


@router.put("/", response_model=SubscriptionRead)
def update_subscription(
    organization_id: int,
    data: SubscriptionUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return SubscriptionService.update(session, organization_id, current_user.id, data)


@router.patch("/status", response_model=SubscriptionRead)
def update_subscription_status(
    organization_id: int,
    data: SubscriptionStatusUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return SubscriptionService.update_status(session, organization_id, current_user.id, data)


@router.get("/usage", response_model=UsageRead)
def subscription_usage(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return SubscriptionService.usage(session, organization_id, current_user.id)


@router.get("/plans", response_model=List[PlanRead])
def available_plans(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return SubscriptionService.available_plans(session, organization_id, current_user.id)


@router.post("/change-plan", response_model=SubscriptionRead)
def change_plan(
    organization_id: int,
    data: ChangePlanRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Upgrade or downgrade; downgrades below current usage are refused."""
    return SubscriptionService.change_plan(session, organization_id, current_user.id, data)
