# contribution_plan_schema.py
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional
from datetime import datetime

from models.models import Frequency
from schemas.common_schema import to_naive_utc


class ContributionPlanCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: float = Field(..., gt=0)
    frequency: Frequency = Frequency.MONTHLY
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_utc(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ContributionPlanUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[float] = Field(default=None, gt=0)
    frequency: Optional[Frequency] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_utc(cls, v):
        return to_naive_utc(v)


class ContributionPlanRead(BaseModel):
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    amount: float
    frequency: str
    start_date: datetime
    end_date: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    contribution_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------
# Generation
# ---------------------------
class GenerateContributionsRequest(BaseModel):
    force: bool = False
    due_date_offset: int = Field(default=0, ge=0, le=365)


class GenerateContributionsResult(BaseModel):
    success: bool = True
    generated: int
    period: str
    due_date: datetime


class AssignPlanRequest(BaseModel):
    membership_id: int
    due_date_offset: int = Field(default=0, ge=0, le=365)
