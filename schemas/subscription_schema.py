# subscription_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime


class SubscriptionRead(BaseModel):
    id: int
    organization_id: int
    plan: str
    status: str
    start_date: datetime
    end_date: Optional[datetime] = None
    max_members: int
    current_usage: int
    price: float
    currency: str

    model_config = ConfigDict(from_attributes=True)


class SubscriptionUpdate(BaseModel):
    end_date: Optional[datetime] = None
    price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class SubscriptionStatusUpdate(BaseModel):
    # validated against SubscriptionStatus by the service
    status: str


class ChangePlanRequest(BaseModel):
    plan: str


class PlanRead(BaseModel):
    name: str
    max_members: int
    unlimited: bool
    price: float
    features: List[str] = []


class UsageRead(BaseModel):
    plan: str
    max_members: int
    active_members: int
    current_usage: int
    available_slots: int
    percentage: float
    status: str
    recommendations: List[str] = []
