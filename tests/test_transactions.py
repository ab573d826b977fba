import pytest

from core.exceptions import Forbidden, NotFound, ValidationError
from schemas.contribution_plan_schema import ContributionPlanCreate
from schemas.contribution_schema import PaymentRequest
from schemas.debt_schema import DebtCreate, RepaymentCreate
from services.contribution_plan_service import ContributionPlanService
from services.contribution_service import ContributionService
from services.debt_service import DebtService
from services.transaction_service import SEARCH_MAX_RESULTS, TransactionService


@pytest.fixture
def ledger(session, org, add_member):
    """One paid contribution and one repayment for the same member."""
    member = add_member()
    plan = ContributionPlanService.create(
        session, org.id, org.admin.id, ContributionPlanCreate(name="Monthly dues", amount=500)
    )
    contribution = ContributionPlanService.assign_plan_to_member(
        session, org.id, plan.id, member.membership.id, org.admin.id
    )
    paid = ContributionService.mark_paid(
        session, org.id, org.admin.id, contribution.id, PaymentRequest(amount=500, payment_method="CASH")
    )
    debt = DebtService.create(
        session, org.id, org.admin.id, DebtCreate(membership_id=member.membership.id, title="Roof repair", amount=800)
    )
    repaid = DebtService.add_repayment(
        session, org.id, org.admin.id, debt.id, RepaymentCreate(amount=300, payment_method="MOBILE_MONEY")
    )
    return member, contribution, paid, repaid


def test_list_with_totals_and_filters(session, org, ledger):
    page = TransactionService.list(session, org.id, org.admin.id)
    assert page["total"] == 2
    assert page["totals"]["count"] == 2
    assert page["totals"]["total_amount"] == 800
    assert page["totals"]["by_type"]["CONTRIBUTION"] == {"count": 1, "amount": 500}
    assert page["totals"]["by_type"]["DEBT_REPAYMENT"] == {"count": 1, "amount": 300}

    repayments = TransactionService.list(session, org.id, org.admin.id, type="DEBT_REPAYMENT")
    assert [t["amount"] for t in repayments["items"]] == [300]

    by_method = TransactionService.list(session, org.id, org.admin.id, payment_method="CASH")
    assert by_method["total"] == 1


def test_get_resolves_the_source(session, org, ledger):
    member, contribution, paid, repaid = ledger

    data = TransactionService.get(session, org.id, member.user.id, paid["transaction_id"])
    assert data["metadata"] == {"contributionId": contribution.id}
    assert data["source"]["kind"] == "contribution"
    assert data["source"]["status"] == "PAID"

    data = TransactionService.get(session, org.id, org.admin.id, repaid["transaction_id"])
    assert data["source"] == {
        "kind": "repayment",
        "id": repaid["repayment"]["id"],
        "debt_id": repaid["debt"]["id"],
        "amount": 300,
    }

    with pytest.raises(NotFound):
        TransactionService.get(session, org.id, org.admin.id, 9999)


def test_other_members_cannot_read_a_transaction(session, org, add_member, ledger):
    _, _, paid, _ = ledger
    other = add_member()
    with pytest.raises(Forbidden):
        TransactionService.get(session, org.id, other.user.id, paid["transaction_id"])
    with pytest.raises(Forbidden):
        TransactionService.list(session, org.id, other.user.id)


def test_search(session, org, ledger):
    _, _, paid, _ = ledger
    with pytest.raises(ValidationError):
        TransactionService.search(session, org.id, org.admin.id, " x ")

    found = TransactionService.search(session, org.id, org.admin.id, "roof")
    assert [t["amount"] for t in found] == [300]

    found = TransactionService.search(session, org.id, org.admin.id, paid["reference"])
    assert [t["id"] for t in found] == [paid["transaction_id"]]


def test_search_is_capped(session, org, add_member, enable_partial_payments):
    member = add_member()
    plan = ContributionPlanService.create(
        session, org.id, org.admin.id, ContributionPlanCreate(name="Big pot", amount=1000)
    )
    contribution = ContributionPlanService.assign_plan_to_member(
        session, org.id, plan.id, member.membership.id, org.admin.id
    )
    for _ in range(SEARCH_MAX_RESULTS + 5):
        ContributionService.add_partial_payment(
            session, org.id, org.admin.id, contribution.id, PaymentRequest(amount=1)
        )
    assert len(TransactionService.search(session, org.id, org.admin.id, "partial")) == SEARCH_MAX_RESULTS


def test_list_by_member(session, org, add_member, ledger):
    member, _, _, _ = ledger
    own = TransactionService.list_by_member(session, org.id, member.user.id, member.membership.id)
    assert own["total"] == 2
    assert own["totals"]["total_amount"] == 800

    other = add_member()
    with pytest.raises(Forbidden):
        TransactionService.list_by_member(session, org.id, other.user.id, member.membership.id)
