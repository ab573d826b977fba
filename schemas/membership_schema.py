# membership_schema.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict, model_validator
from typing import Optional
from datetime import datetime

from models.models import MembershipRole, MembershipStatus
from schemas.user_schema import UserRead


class MembershipCreate(BaseModel):
    # The member is looked up by phone first, then email
    phone: Optional[str] = Field(default=None, max_length=30)
    email: Optional[EmailStr] = None
    role: MembershipRole = MembershipRole.MEMBER

    @model_validator(mode="after")
    def phone_or_email(self):
        if not self.phone and not self.email:
            raise ValueError("Either phone or email is required")
        return self


class MembershipUpdate(BaseModel):
    member_number: Optional[str] = Field(default=None, max_length=30)
    joined_at: Optional[datetime] = None


class MembershipStatusUpdate(BaseModel):
    status: MembershipStatus


class MembershipRoleUpdate(BaseModel):
    role: MembershipRole


class MembershipRead(BaseModel):
    id: int
    user_id: int
    organization_id: int
    role: str
    status: str
    member_number: Optional[str] = None
    joined_at: datetime
    created_at: datetime
    user: Optional[UserRead] = None

    model_config = ConfigDict(from_attributes=True)
