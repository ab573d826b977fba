# models/models.py
from typing import Optional, List
from datetime import datetime
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint
import json


# ============================================================
# ENUMS
# ============================================================
class OrganizationType(str, Enum):
    ASSOCIATION = "ASSOCIATION"
    TONTINE = "TONTINE"
    COOPERATIVE = "COOPERATIVE"
    NGO = "NGO"
    OTHER = "OTHER"


class MembershipRole(str, Enum):
    ADMIN = "ADMIN"
    FINANCIAL_MANAGER = "FINANCIAL_MANAGER"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Frequency(str, Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


class ContributionStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class DebtStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class TransactionType(str, Enum):
    CONTRIBUTION = "CONTRIBUTION"
    DEBT_REPAYMENT = "DEBT_REPAYMENT"
    FINE = "FINE"
    DONATION = "DONATION"
    EXPENSE = "EXPENSE"
    OTHER = "OTHER"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    CREDIT_CARD = "CREDIT_CARD"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PlanName(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class NotificationType(str, Enum):
    PAYMENT_CONFIRMATION = "PAYMENT_CONFIRMATION"
    CONTRIBUTION_REMINDER = "CONTRIBUTION_REMINDER"
    DEBT_REMINDER = "DEBT_REMINDER"
    GENERAL = "GENERAL"


# ============================================================
# USER (identity record)
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str = Field(max_length=100)
    email: str = Field(index=True, unique=True, max_length=100, nullable=False)
    phone: Optional[str] = Field(default=None, max_length=30, unique=True, index=True)
    password_hash: str = Field(nullable=False)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    memberships: List["Membership"] = Relationship(back_populates="user")


# ============================================================
# ORGANIZATION (tenant)
# ============================================================
class Organization(SQLModel, table=True):
    __tablename__ = "organization"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: str = Field(default=OrganizationType.ASSOCIATION.value, max_length=20)
    currency: str = Field(default="XOF", max_length=3)
    owner_id: int = Field(foreign_key="user.id", index=True)
    is_active: bool = Field(default=True, index=True)

    # Monotonic counter used to mint member numbers
    member_counter: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    settings: Optional["OrganizationSettings"] = Relationship(
        back_populates="organization",
        sa_relationship_kwargs={"uselist": False},
    )
    memberships: List["Membership"] = Relationship(back_populates="organization")
    subscription: Optional["Subscription"] = Relationship(
        back_populates="organization",
        sa_relationship_kwargs={"uselist": False},
    )


class OrganizationSettings(SQLModel, table=True):
    __tablename__ = "organization_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", unique=True, index=True)

    allow_partial_payments: bool = Field(default=False)
    auto_reminders: bool = Field(default=True)
    reminder_days: str = Field(default="[1, 3, 7]")  # JSON list of days before due date
    email_notifications: bool = Field(default=True)
    session_timeout: int = Field(default=60)

    organization: Optional["Organization"] = Relationship(back_populates="settings")

    @property
    def reminder_days_list(self) -> List[int]:
        return json.loads(self.reminder_days or "[]")


# ============================================================
# MEMBERSHIP
# ============================================================
class Membership(SQLModel, table=True):
    __tablename__ = "membership"
    __table_args__ = (UniqueConstraint("user_id", "organization_id", name="uq_membership_user_org"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)

    role: str = Field(default=MembershipRole.MEMBER.value, max_length=20, index=True)
    status: str = Field(default=MembershipStatus.ACTIVE.value, max_length=20, index=True)
    member_number: Optional[str] = Field(default=None, max_length=30, index=True)

    joined_at: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    user: Optional["User"] = Relationship(back_populates="memberships")
    organization: Optional["Organization"] = Relationship(back_populates="memberships")


# ============================================================
# CONTRIBUTION PLAN
# ============================================================
class ContributionPlan(SQLModel, table=True):
    __tablename__ = "contribution_plan"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)

    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    amount: float = Field(gt=0)
    frequency: str = Field(default=Frequency.MONTHLY.value, max_length=20)
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    contributions: List["Contribution"] = Relationship(back_populates="contribution_plan")


# ============================================================
# CONTRIBUTION (one obligation per member per period)
# ============================================================
class Contribution(SQLModel, table=True):
    __tablename__ = "contribution"
    __table_args__ = (
        UniqueConstraint(
            "membership_id", "contribution_plan_id", "period",
            name="uq_contribution_member_plan_period",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)
    membership_id: int = Field(foreign_key="membership.id", index=True)
    contribution_plan_id: int = Field(foreign_key="contribution_plan.id", index=True)

    amount: float = Field(ge=0)
    amount_paid: float = Field(default=0.0, ge=0)
    status: str = Field(default=ContributionStatus.PENDING.value, max_length=20, index=True)

    due_date: datetime = Field(index=True)
    period: str = Field(max_length=7, index=True)  # YYYY-MM bucket of due_date

    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = Field(default=None, max_length=20)
    transaction_id: Optional[int] = Field(default=None, foreign_key="ledger_transaction.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    contribution_plan: Optional["ContributionPlan"] = Relationship(back_populates="contributions")
    partial_payments: List["PartialPayment"] = Relationship(back_populates="contribution")

    @property
    def remaining_amount(self) -> float:
        return round(self.amount - self.amount_paid, 2)


class PartialPayment(SQLModel, table=True):
    __tablename__ = "partial_payment"

    id: Optional[int] = Field(default=None, primary_key=True)
    contribution_id: int = Field(foreign_key="contribution.id", index=True)
    amount: float = Field(gt=0)
    payment_method: str = Field(max_length=20)
    payment_date: datetime = Field(default_factory=datetime.utcnow)
    transaction_id: Optional[int] = Field(default=None, foreign_key="ledger_transaction.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    contribution: Optional["Contribution"] = Relationship(back_populates="partial_payments")


# ============================================================
# DEBT & REPAYMENT
# ============================================================
class Debt(SQLModel, table=True):
    __tablename__ = "debt"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)
    membership_id: int = Field(foreign_key="membership.id", index=True)

    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    initial_amount: float = Field(gt=0)
    remaining_amount: float = Field(ge=0)
    status: str = Field(default=DebtStatus.ACTIVE.value, max_length=20, index=True)
    due_date: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    repayments: List["Repayment"] = Relationship(back_populates="debt")


class Repayment(SQLModel, table=True):
    __tablename__ = "repayment"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debt.id", index=True)
    amount: float = Field(gt=0)
    payment_method: str = Field(max_length=20)
    payment_date: datetime = Field(default_factory=datetime.utcnow)
    transaction_id: Optional[int] = Field(default=None, foreign_key="ledger_transaction.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    debt: Optional["Debt"] = Relationship(back_populates="repayments")


# ============================================================
# TRANSACTION (immutable ledger entry)
# ============================================================
class Transaction(SQLModel, table=True):
    __tablename__ = "ledger_transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)
    membership_id: Optional[int] = Field(default=None, foreign_key="membership.id", index=True)

    type: str = Field(max_length=20, index=True)
    amount: float
    currency: str = Field(default="XOF", max_length=3)
    description: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[str] = Field(default=None, max_length=20)
    payment_status: str = Field(default=PaymentStatus.COMPLETED.value, max_length=20)
    reference: str = Field(unique=True, index=True, max_length=64)

    # JSON back-link to the source contribution / repayment
    transaction_metadata: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.transaction_metadata) if self.transaction_metadata else {}


# ============================================================
# SUBSCRIPTION (one per organization)
# ============================================================
class Subscription(SQLModel, table=True):
    __tablename__ = "subscription"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", unique=True, index=True)

    plan: str = Field(default=PlanName.FREE.value, max_length=20, index=True)
    status: str = Field(default=SubscriptionStatus.ACTIVE.value, max_length=20)
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    max_members: int = Field(default=50)
    current_usage: int = Field(default=0)
    price: float = Field(default=0.0)
    currency: str = Field(default="XOF", max_length=3)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    organization: Optional["Organization"] = Relationship(back_populates="subscription")


# ============================================================
# AUDIT LOG (write-only sink)
# ============================================================
class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    action: str = Field(max_length=60, index=True)
    resource: str = Field(max_length=40)
    resource_id: Optional[int] = None
    user_id: Optional[int] = Field(default=None, index=True)
    organization_id: Optional[int] = Field(default=None, index=True)
    membership_id: Optional[int] = None
    details: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# NOTIFICATION
# ============================================================
class Notification(SQLModel, table=True):
    __tablename__ = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: int = Field(foreign_key="organization.id", index=True)
    membership_id: Optional[int] = Field(default=None, foreign_key="membership.id", index=True)
    type: str = Field(default=NotificationType.GENERAL.value, max_length=40)
    title: str = Field(max_length=200)
    message: str = Field(max_length=1000)
    priority: str = Field(default="MEDIUM", max_length=10)
    status: str = Field(default="PENDING", max_length=20)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# EXPORTS
# ============================================================
__all__ = [
    "User",
    "Organization",
    "OrganizationSettings",
    "Membership",
    "ContributionPlan",
    "Contribution",
    "PartialPayment",
    "Debt",
    "Repayment",
    "Transaction",
    "Subscription",
    "AuditLog",
    "Notification",
    "OrganizationType",
    "MembershipRole",
    "MembershipStatus",
    "Frequency",
    "ContributionStatus",
    "DebtStatus",
    "TransactionType",
    "PaymentMethod",
    "PaymentStatus",
    "PlanName",
    "SubscriptionStatus",
    "NotificationType",
]
