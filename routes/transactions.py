# routes/transactions.py
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import List, Optional

from core.database import get_session
from core.security import get_current_user
from models.models import PaymentMethod, TransactionType, User
from schemas.transaction_schema import TransactionRead
from services.transaction_service import TransactionService

router = APIRouter(prefix="/organizations/{organization_id}/transactions", tags=["Transactions"])


@router.get("/")
def list_transactions(
    organization_id: int,
    type: Optional[TransactionType] = None,
    membership_id: Optional[int] = None,
    payment_method: Optional[PaymentMethod] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Paginated ledger with per-type totals."""
    return TransactionService.list(
        session,
        organization_id,
        current_user.id,
        type=type.value if type else None,
        membership_id=membership_id,
        payment_method=payment_method.value if payment_method else None,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )


@router.get("/search", response_model=List[TransactionRead])
def search_transactions(
    organization_id: int,
    q: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return TransactionService.search(session, organization_id, current_user.id, q)


@router.get("/member/{membership_id}")
def list_member_transactions(
    organization_id: int,
    membership_id: int,
    type: Optional[TransactionType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return TransactionService.list_by_member(
        session,
        organization_id,
        current_user.id,
        membership_id,
        type=type.value if type else None,
        page=page,
        limit=limit,
    )


@router.get("/{transaction_id}")
def get_transaction(
    organization_id: int,
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return TransactionService.get(session, organization_id, current_user.id, transaction_id)
