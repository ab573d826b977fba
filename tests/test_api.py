import pytest
from fastapi.testclient import TestClient

from core.database import get_session
from core.security import create_token_for_user
from main import app


@pytest.fixture
def client(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user):
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_register_login_and_me(client):
    payload = {"full_name": "Fatou Diop", "email": "Fatou@Example.com", "phone": "+221770001122", "password": "s3cret-pass"}
    response = client.post("/auth/register", json=payload)
    assert response.status_code == 201
    assert response.json()["user"]["email"] == "fatou@example.com"

    duplicate = client.post("/auth/register", json=payload)
    assert duplicate.status_code == 400

    bad = client.post("/auth/login", json={"email": "fatou@example.com", "password": "wrong-password"})
    assert bad.status_code == 401

    login = client.post("/auth/login", json={"email": "fatou@example.com", "password": "s3cret-pass"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["full_name"] == "Fatou Diop"


def test_routes_require_a_token(client, org):
    assert client.get(f"/organizations/{org.id}").status_code == 401


def test_contribution_cycle_over_http(client, org, add_member):
    member = add_member()
    headers = auth(org.admin)

    plan = client.post(
        f"/organizations/{org.id}/contribution-plans/",
        json={"name": "Weekly pot", "amount": 250, "frequency": "WEEKLY"},
        headers=headers,
    )
    assert plan.status_code == 201
    plan_id = plan.json()["id"]

    generated = client.post(f"/organizations/{org.id}/contribution-plans/{plan_id}/generate", headers=headers)
    assert generated.status_code == 200
    assert generated.json()["generated"] == 2

    again = client.post(f"/organizations/{org.id}/contribution-plans/{plan_id}/generate", headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyGenerated"

    mine = client.get(
        f"/organizations/{org.id}/contributions/member/{member.membership.id}", headers=auth(member.user)
    ).json()
    assert mine["totals"]["total_due"] == 250
    contribution_id = mine["items"][0]["id"]

    # members cannot record payments
    forbidden = client.post(
        f"/organizations/{org.id}/contributions/{contribution_id}/pay",
        json={"amount": 250},
        headers=auth(member.user),
    )
    assert forbidden.status_code == 403
    assert forbidden.json() == {
        "success": False,
        "error": "Forbidden",
        "detail": "Insufficient permissions for this operation",
    }

    wrong = client.post(
        f"/organizations/{org.id}/contributions/{contribution_id}/pay", json={"amount": 200}, headers=headers
    )
    assert wrong.status_code == 400
    assert wrong.json()["error"] == "InvalidAmount"

    paid = client.post(
        f"/organizations/{org.id}/contributions/{contribution_id}/pay",
        json={"amount": 250, "payment_method": "MOBILE_MONEY"},
        headers=headers,
    )
    assert paid.status_code == 200
    assert paid.json()["contribution"]["status"] == "PAID"

    transactions = client.get(f"/organizations/{org.id}/transactions/", headers=headers).json()
    assert transactions["total"] == 1
    assert transactions["items"][0]["reference"] == paid.json()["reference"]


def test_outsider_is_unauthorized(client, org, make_user):
    response = client.get(f"/organizations/{org.id}/members/", headers=auth(make_user()))
    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"


def test_payload_errors_share_the_error_shape(client, org):
    response = client.post(f"/organizations/{org.id}/members/", json={"role": "MEMBER"}, headers=auth(org.admin))
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "ValidationError"


def test_debt_repayment_over_http(client, org, add_member):
    member = add_member()
    headers = auth(org.admin)

    debt = client.post(
        f"/organizations/{org.id}/debts/",
        json={"membership_id": member.membership.id, "title": "Seed loan", "amount": 1000},
        headers=headers,
    )
    assert debt.status_code == 201
    debt_id = debt.json()["id"]

    too_much = client.post(f"/organizations/{org.id}/debts/{debt_id}/repayments", json={"amount": 1200}, headers=headers)
    assert too_much.status_code == 400
    assert too_much.json()["error"] == "AmountExceedsBalance"

    repaid = client.post(f"/organizations/{org.id}/debts/{debt_id}/repayments", json={"amount": 400}, headers=headers)
    assert repaid.status_code == 201
    assert repaid.json()["debt"]["status"] == "PARTIALLY_PAID"

    history = client.get(f"/organizations/{org.id}/debts/{debt_id}/repayments", headers=auth(member.user)).json()
    assert history["repayment_rate"] == 40.0


def test_plan_update_with_utc_offset_dates(client, org):
    headers = auth(org.admin)
    plan = client.post(
        f"/organizations/{org.id}/contribution-plans/",
        json={"name": "Yearly levy", "amount": 50, "frequency": "YEARLY", "end_date": "2030-01-01T00:00:00"},
        headers=headers,
    ).json()

    updated = client.put(
        f"/organizations/{org.id}/contribution-plans/{plan['id']}",
        json={"start_date": "2026-01-01T00:00:00Z"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["start_date"] == "2026-01-01T00:00:00"

    debt = client.post(
        f"/organizations/{org.id}/debts/",
        json={
            "membership_id": org.admin_membership.id,
            "title": "Hall deposit",
            "amount": 300,
            "due_date": "2026-06-30T12:00:00+02:00",
        },
        headers=headers,
    )
    assert debt.status_code == 201
    assert debt.json()["due_date"] == "2026-06-30T10:00:00"


def test_bad_or_stale_tokens_are_rejected(client, session, make_user):
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    user = make_user()
    headers = auth(user)
    assert client.get("/auth/me", headers=headers).status_code == 200

    user.email = "renamed@example.com"
    session.add(user)
    session.commit()
    assert client.get("/auth/me", headers=headers).status_code == 401

    user.is_active = False
    session.add(user)
    session.commit()
    assert client.get("/auth/me", headers=auth(user)).status_code == 403
