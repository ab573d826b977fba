# contribution_schema.py
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime

from models.models import PaymentMethod


class PaymentRequest(BaseModel):
    # amount bounds are enforced by the balance engine so callers get InvalidAmount
    amount: float
    payment_method: PaymentMethod = PaymentMethod.CASH


class PartialPaymentRead(BaseModel):
    id: int
    contribution_id: int
    amount: float
    payment_method: str
    payment_date: datetime
    transaction_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ContributionRead(BaseModel):
    id: int
    organization_id: int
    membership_id: int
    contribution_plan_id: int
    plan_name: Optional[str] = None
    amount: float
    amount_paid: float
    remaining_amount: float
    status: str
    due_date: datetime
    period: str
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContributionDetail(ContributionRead):
    partial_payments: List[PartialPaymentRead] = []


class MemberContributionTotals(BaseModel):
    total_due: float
    total_paid: float
    total_remaining: float
    count: int
