# organization_schema.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

from models.models import OrganizationType


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: OrganizationType = OrganizationType.ASSOCIATION
    currency: str = Field(default="XOF", min_length=3, max_length=3)

    # owner_id is set by server during creation

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: Optional[OrganizationType] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class OrganizationSettingsRead(BaseModel):
    allow_partial_payments: bool
    auto_reminders: bool
    reminder_days: List[int] = Field(default_factory=list)
    email_notifications: bool
    session_timeout: int


class OrganizationSettingsUpdate(BaseModel):
    allow_partial_payments: Optional[bool] = None
    auto_reminders: Optional[bool] = None
    reminder_days: Optional[List[int]] = None
    email_notifications: Optional[bool] = None
    session_timeout: Optional[int] = Field(default=None, ge=5, le=1440)

    @field_validator("reminder_days")
    @classmethod
    def positive_days(cls, v):
        if v is not None and any(day < 0 for day in v):
            raise ValueError("reminder_days must be positive")
        return v


class OrganizationRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: str
    currency: str
    owner_id: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrganizationDetail(OrganizationRead):
    member_count: int = 0
    plan_count: int = 0
    settings: Optional[OrganizationSettingsRead] = None


class OrganizationWithRole(OrganizationRead):
    role: str
    member_number: Optional[str] = None


class OrganizationStats(BaseModel):
    organization_id: int
    active_members: int
    active_plans: int
    total_contributions: int
    pending_contributions: int
    active_debt_balance: float
    transactions_last_30_days: int
