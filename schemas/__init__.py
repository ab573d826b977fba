from .common_schema import Page, MessageResponse
from .user_schema import UserCreate, UserLogin, UserRead, Token
from .organization_schema import (
    OrganizationCreate, OrganizationUpdate, OrganizationRead, OrganizationDetail,
    OrganizationWithRole, OrganizationStats,
    OrganizationSettingsRead, OrganizationSettingsUpdate,
)
from .membership_schema import (
    MembershipCreate, MembershipUpdate, MembershipStatusUpdate, MembershipRoleUpdate, MembershipRead
)
from .contribution_plan_schema import (
    ContributionPlanCreate, ContributionPlanUpdate, ContributionPlanRead,
    GenerateContributionsRequest, GenerateContributionsResult, AssignPlanRequest,
)
from .contribution_schema import (
    PaymentRequest, PartialPaymentRead, ContributionRead, ContributionDetail, MemberContributionTotals
)
from .debt_schema import (
    DebtCreate, DebtStatusUpdate, DebtRead, DebtDetail,
    RepaymentCreate, RepaymentRead, RepaymentHistory, MemberDebtTotals, DebtSummary,
)
from .transaction_schema import TransactionRead, TransactionTotals
from .subscription_schema import (
    SubscriptionRead, SubscriptionUpdate, SubscriptionStatusUpdate, ChangePlanRequest, PlanRead, UsageRead
)

__all__ = [
    # Common
    "Page", "MessageResponse",

    # User
    "UserCreate", "UserLogin", "UserRead", "Token",

    # Organization
    "OrganizationCreate", "OrganizationUpdate", "OrganizationRead", "OrganizationDetail",
    "OrganizationWithRole", "OrganizationStats",
    "OrganizationSettingsRead", "OrganizationSettingsUpdate",

    # Membership
    "MembershipCreate", "MembershipUpdate", "MembershipStatusUpdate", "MembershipRoleUpdate", "MembershipRead",

    # Contribution plan
    "ContributionPlanCreate", "ContributionPlanUpdate", "ContributionPlanRead",
    "GenerateContributionsRequest", "GenerateContributionsResult", "AssignPlanRequest",

    # Contribution
    "PaymentRequest", "PartialPaymentRead", "ContributionRead", "ContributionDetail", "MemberContributionTotals",

    # Debt
    "DebtCreate", "DebtStatusUpdate", "DebtRead", "DebtDetail",
    "RepaymentCreate", "RepaymentRead", "RepaymentHistory", "MemberDebtTotals", "DebtSummary",

    # Transaction
    "TransactionRead", "TransactionTotals",

    # Subscription
    "SubscriptionRead", "SubscriptionUpdate", "SubscriptionStatusUpdate", "ChangePlanRequest", "PlanRead", "UsageRead",
]
