# routes/organization.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from typing import List

from core.database import get_session
from core.security import get_current_user
from models.models import User
from schemas.organization_schema import (
    OrganizationCreate,
    OrganizationDetail,
    OrganizationRead,
    OrganizationSettingsRead,
    OrganizationSettingsUpdate,
    OrganizationStats,
    OrganizationUpdate,
    OrganizationWithRole,
)
from services.organization_service import OrganizationService

router = APIRouter(prefix="/organizations", tags=["Organizations"])


# ==================================================================
#  ✅ CREATE ORGANIZATION
# ==================================================================
@router.post("/", response_model=OrganizationRead, status_code=201)
def create_organization(
    data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create an organization; the caller becomes its owner and first ADMIN."""
    return OrganizationService.create(session, current_user.id, data)


# ==================================================================
#  ✅ MY ORGANIZATIONS
# ==================================================================
@router.get("/", response_model=List[OrganizationWithRole])
def list_my_organizations(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.list_for_user(session, current_user.id)


@router.get("/search", response_model=List[OrganizationWithRole])
def search_organizations(
    q: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.search(session, current_user.id, q)


# ==================================================================
#  ✅ GET / UPDATE / DEACTIVATE
# ==================================================================
@router.get("/{organization_id}", response_model=OrganizationDetail)
def get_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.get(session, organization_id, current_user.id)


@router.put("/{organization_id}", response_model=OrganizationRead)
def update_organization(
    organization_id: int,
    data: OrganizationUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.update(session, organization_id, current_user.id, data)


@router.put("/{organization_id}/settings", response_model=OrganizationSettingsRead)
def update_organization_settings(
    organization_id: int,
    data: OrganizationSettingsUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.update_settings(session, organization_id, current_user.id, data)


@router.delete("/{organization_id}", response_model=OrganizationRead)
def deactivate_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Soft delete (owner only)."""
    return OrganizationService.deactivate(session, organization_id, current_user.id)


@router.get("/{organization_id}/stats", response_model=OrganizationStats)
def organization_stats(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return OrganizationService.stats(session, organization_id, current_user.id)
