# transaction_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class TransactionRead(BaseModel):
    id: int
    organization_id: int
    membership_id: Optional[int] = None
    type: str
    amount: float
    currency: str
    description: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: str
    reference: str
    metadata: dict = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionTotals(BaseModel):
    count: int
    total_amount: float
    by_type: dict
