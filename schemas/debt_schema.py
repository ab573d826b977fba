# debt_schema.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

from models.models import DebtStatus, PaymentMethod
from schemas.common_schema import to_naive_utc


class DebtCreate(BaseModel):
    membership_id: int
    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: float = Field(..., gt=0)
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def naive_utc(cls, v):
        return to_naive_utc(v)


class DebtStatusUpdate(BaseModel):
    status: DebtStatus


class RepaymentCreate(BaseModel):
    amount: float
    payment_method: PaymentMethod = PaymentMethod.CASH


class RepaymentRead(BaseModel):
    id: int
    debt_id: int
    amount: float
    payment_method: str
    payment_date: datetime
    transaction_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class DebtRead(BaseModel):
    id: int
    organization_id: int
    membership_id: int
    title: str
    description: Optional[str] = None
    initial_amount: float
    remaining_amount: float
    status: str
    due_date: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DebtDetail(DebtRead):
    repayments: List[RepaymentRead] = []


class RepaymentHistory(BaseModel):
    debt_id: int
    repayments: List[RepaymentRead]
    total_repaid: float
    repayment_rate: float


class MemberDebtTotals(BaseModel):
    total_initial: float
    total_remaining: float
    count: int


class DebtSummary(BaseModel):
    total_debts: int
    active_debts: int
    total_initial: float
    total_remaining: float
    total_repaid: float
    by_status: dict
    recent_repayments: int
    recent_repayment_amount: float
