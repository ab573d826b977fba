# routes/debts.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from core.database import get_session
from core.security import get_current_user
from models.models import DebtStatus, User
from schemas.common_schema import Page
from schemas.debt_schema import (
    DebtCreate,
    DebtDetail,
    DebtRead,
    DebtStatusUpdate,
    DebtSummary,
    RepaymentCreate,
    RepaymentHistory,
)
from services.debt_service import DebtService

router = APIRouter(prefix="/organizations/{organization_id}/debts", tags=["Debts"])


@router.post("/", response_model=DebtRead, status_code=201)
def create_debt(
    organization_id: int,
    data: DebtCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.create(session, organization_id, current_user.id, data)


@router.get("/", response_model=Page[DebtRead])
def list_debts(
    organization_id: int,
    status: Optional[DebtStatus] = None,
    membership_id: Optional[int] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.list(
        session,
        organization_id,
        current_user.id,
        status=status.value if status else None,
        membership_id=membership_id,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/summary", response_model=DebtSummary)
def debt_summary(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.summary(session, organization_id, current_user.id)


@router.get("/member/{membership_id}")
def list_member_debts(
    organization_id: int,
    membership_id: int,
    status: Optional[DebtStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.list_by_member(
        session,
        organization_id,
        current_user.id,
        membership_id,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )


@router.get("/{debt_id}", response_model=DebtDetail)
def get_debt(
    organization_id: int,
    debt_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.get(session, organization_id, current_user.id, debt_id)


@router.post("/{debt_id}/repayments", status_code=201)
def add_repayment(
    organization_id: int,
    debt_id: int,
    data: RepaymentCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.add_repayment(session, organization_id, current_user.id, debt_id, data)


@router.get("/{debt_id}/repayments", response_model=RepaymentHistory)
def list_repayments(
    organization_id: int,
    debt_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.list_repayments(session, organization_id, current_user.id, debt_id)


@router.patch("/{debt_id}/status", response_model=DebtRead)
def update_debt_status(
    organization_id: int,
    debt_id: int,
    data: DebtStatusUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return DebtService.update_status(session, organization_id, current_user.id, debt_id, data)
