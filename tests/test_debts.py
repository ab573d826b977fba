import pytest
from sqlmodel import select

from core.exceptions import (
    AlreadySettled,
    AmountExceedsBalance,
    DebtAlreadyPaid,
    Forbidden,
    NotFound,
    ValidationError,
)
from models.models import Debt, DebtStatus, MembershipRole, MembershipStatus, Repayment, Transaction
from schemas.debt_schema import DebtCreate, DebtStatusUpdate, RepaymentCreate
from schemas.membership_schema import MembershipStatusUpdate
from services.debt_service import DebtService
from services.membership_service import MembershipService


@pytest.fixture
def loan(session, org, add_member):
    """A member owing 1000."""
    member = add_member()
    debt = DebtService.create(
        session, org.id, org.admin.id, DebtCreate(membership_id=member.membership.id, title="Emergency loan", amount=1000)
    )
    return member, debt


def reload(session, debt_id):
    debt = session.get(Debt, debt_id)
    session.refresh(debt)
    return debt


def test_create_debt(session, org, loan):
    member, debt = loan
    assert debt.initial_amount == 1000
    assert debt.remaining_amount == 1000
    assert debt.status == "ACTIVE"
    assert debt.membership_id == member.membership.id


def test_create_requires_manager_and_active_member(session, org, add_member):
    member = add_member()
    with pytest.raises(Forbidden):
        DebtService.create(
            session, org.id, member.user.id, DebtCreate(membership_id=member.membership.id, title="Loan", amount=10)
        )

    MembershipService.update_status(
        session, org.id, org.admin.id, member.membership.id, MembershipStatusUpdate(status=MembershipStatus.INACTIVE)
    )
    with pytest.raises(ValidationError):
        DebtService.create(
            session, org.id, org.admin.id, DebtCreate(membership_id=member.membership.id, title="Loan", amount=10)
        )


def test_repayment_over_balance_leaves_state_unchanged(session, org, loan):
    _, debt = loan
    with pytest.raises(AmountExceedsBalance) as exc:
        DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=1200))
    assert exc.value.remaining == 1000

    stored = reload(session, debt.id)
    assert stored.remaining_amount == 1000
    assert stored.status == "ACTIVE"
    assert session.exec(select(Repayment)).all() == []
    assert session.exec(select(Transaction)).all() == []


def test_repayments_until_paid(session, org, loan):
    member, debt = loan

    first = DebtService.add_repayment(
        session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=400, payment_method="MOBILE_MONEY")
    )
    assert first["debt"]["remaining_amount"] == 600
    assert first["debt"]["status"] == "PARTIALLY_PAID"
    assert first["reference"].startswith("REPAY-")

    second = DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=600))
    assert second["debt"]["remaining_amount"] == 0
    assert second["debt"]["status"] == "PAID"

    transactions = session.exec(select(Transaction).where(Transaction.type == "DEBT_REPAYMENT")).all()
    assert sorted(t.amount for t in transactions) == [400, 600]
    assert {t.membership_id for t in transactions} == {member.membership.id}
    assert first["reference"] != second["reference"]

    repayment = session.get(Repayment, first["repayment"]["id"])
    assert repayment.transaction_id == first["transaction_id"]

    with pytest.raises(DebtAlreadyPaid):
        DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=1))


def test_cancelled_debt_takes_no_repayments(session, org, loan):
    _, debt = loan
    DebtService.update_status(session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=DebtStatus.CANCELLED))
    with pytest.raises(AlreadySettled):
        DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=10))


def test_update_status_must_agree_with_balance(session, org, loan):
    _, debt = loan
    with pytest.raises(ValidationError):
        DebtService.update_status(session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=DebtStatus.PAID))
    assert reload(session, debt.id).status == "ACTIVE"

    updated = DebtService.update_status(
        session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=DebtStatus.OVERDUE)
    )
    assert updated.status == "OVERDUE"

    # back to the derived status is allowed
    updated = DebtService.update_status(
        session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=DebtStatus.ACTIVE)
    )
    assert updated.status == "ACTIVE"


def test_update_status_is_admin_only(session, org, add_member, loan):
    _, debt = loan
    manager = add_member(MembershipRole.FINANCIAL_MANAGER)
    with pytest.raises(Forbidden):
        DebtService.update_status(
            session, org.id, manager.user.id, debt.id, DebtStatusUpdate(status=DebtStatus.OVERDUE)
        )
    with pytest.raises(NotFound):
        DebtService.update_status(session, org.id, org.admin.id, 9999, DebtStatusUpdate(status=DebtStatus.OVERDUE))


def test_get_and_repayment_history_access(session, org, add_member, loan):
    member, debt = loan
    DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=250))

    own = DebtService.get(session, org.id, member.user.id, debt.id)
    assert [r["amount"] for r in own["repayments"]] == [250]

    history = DebtService.list_repayments(session, org.id, member.user.id, debt.id)
    assert history["total_repaid"] == 250
    assert history["repayment_rate"] == 25.0

    other = add_member()
    with pytest.raises(Forbidden):
        DebtService.get(session, org.id, other.user.id, debt.id)
    with pytest.raises(Forbidden):
        DebtService.list(session, org.id, other.user.id)


def test_list_and_member_totals(session, org, add_member, loan):
    member, debt = loan
    DebtService.create(
        session, org.id, org.admin.id, DebtCreate(membership_id=member.membership.id, title="School fees", amount=300)
    )
    DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=100))

    assert DebtService.list(session, org.id, org.admin.id)["total"] == 2
    assert DebtService.list(session, org.id, org.admin.id, status="PARTIALLY_PAID")["total"] == 1
    assert DebtService.list(session, org.id, org.admin.id, search="school")["total"] == 1

    mine = DebtService.list_by_member(session, org.id, member.user.id, member.membership.id)
    assert mine["totals"] == {"total_initial": 1300, "total_remaining": 1200, "count": 2}


def test_summary(session, org, loan):
    _, debt = loan
    DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=1000))

    summary = DebtService.summary(session, org.id, org.admin.id)
    assert summary["total_debts"] == 1
    assert summary["active_debts"] == 0
    assert summary["total_repaid"] == 1000
    assert summary["by_status"]["PAID"]["count"] == 1
    assert summary["recent_repayments"] == 1
    assert summary["recent_repayment_amount"] == 1000


def test_fully_repaid_debt_stays_paid(session, org, loan):
    _, debt = loan
    DebtService.add_repayment(session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=1000))

    for status in (DebtStatus.CANCELLED, DebtStatus.OVERDUE, DebtStatus.ACTIVE):
        with pytest.raises(DebtAlreadyPaid):
            DebtService.update_status(session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=status))

    stored = reload(session, debt.id)
    assert stored.status == "PAID"
    assert stored.remaining_amount == 0

    # re-asserting the derived status is harmless
    assert DebtService.update_status(
        session, org.id, org.admin.id, debt.id, DebtStatusUpdate(status=DebtStatus.PAID)
    ).status == "PAID"
