# routes/memberships.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import Optional

from core.database import get_session
from core.security import get_current_user
from models.models import MembershipRole, MembershipStatus, User
from schemas.common_schema import MessageResponse, Page
from schemas.membership_schema import (
    MembershipCreate,
    MembershipRead,
    MembershipRoleUpdate,
    MembershipStatusUpdate,
    MembershipUpdate,
)
from services.membership_service import MembershipService

router = APIRouter(prefix="/organizations/{organization_id}/members", tags=["Members"])


@router.post("/", response_model=MembershipRead, status_code=201)
def add_member(
    organization_id: int,
    data: MembershipCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Add an existing user (looked up by phone or email) to the organization."""
    return MembershipService.create(session, organization_id, current_user.id, data)


@router.get("/", response_model=Page[MembershipRead])
def list_members(
    organization_id: int,
    status: Optional[MembershipStatus] = None,
    role: Optional[MembershipRole] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.list(
        session,
        organization_id,
        current_user.id,
        status=status.value if status else None,
        role=role.value if role else None,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/{membership_id}", response_model=MembershipRead)
def get_member(
    organization_id: int,
    membership_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.get(session, organization_id, current_user.id, membership_id)


@router.put("/{membership_id}", response_model=MembershipRead)
def update_member(
    organization_id: int,
    membership_id: int,
    data: MembershipUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.update(session, organization_id, current_user.id, membership_id, data)


@router.patch("/{membership_id}/status", response_model=MembershipRead)
def update_member_status(
    organization_id: int,
    membership_id: int,
    data: MembershipStatusUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.update_status(session, organization_id, current_user.id, membership_id, data)


@router.patch("/{membership_id}/role", response_model=MembershipRead)
def update_member_role(
    organization_id: int,
    membership_id: int,
    data: MembershipRoleUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.update_role(session, organization_id, current_user.id, membership_id, data)


@router.delete("/{membership_id}", response_model=MessageResponse)
def remove_member(
    organization_id: int,
    membership_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return MembershipService.delete(session, organization_id, current_user.id, membership_id)
