# services/transaction_service.py
"""Read side of the immutable ledger. Transactions are only ever written by the ledger service."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from core.exceptions import ValidationError
from models.models import Contribution, Repayment, Transaction
from services.access_service import ADMIN_ONLY, MANAGERS, authorize, get_owned_or_404, require_self_or_roles
from services.balance import money
from services.pagination import paginate

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
SEARCH_MAX_RESULTS = 50


def transaction_to_dict(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "organization_id": transaction.organization_id,
        "membership_id": transaction.membership_id,
        "type": transaction.type,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "description": transaction.description,
        "payment_method": transaction.payment_method,
        "payment_status": transaction.payment_status,
        "reference": transaction.reference,
        "metadata": transaction.metadata_dict,
        "created_at": transaction.created_at,
    }


def _filtered(
    organization_id: int,
    type: Optional[str] = None,
    membership_id: Optional[int] = None,
    payment_method: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    conditions = [Transaction.organization_id == organization_id]
    if type:
        conditions.append(Transaction.type == type)
    if membership_id:
        conditions.append(Transaction.membership_id == membership_id)
    if payment_method:
        conditions.append(Transaction.payment_method == payment_method)
    if date_from:
        conditions.append(Transaction.created_at >= date_from)
    if date_to:
        conditions.append(Transaction.created_at <= date_to)
    return conditions


def _totals(session: Session, conditions) -> dict:
    rows = session.exec(
        select(Transaction.type, func.count(Transaction.id), func.coalesce(func.sum(Transaction.amount), 0.0))
        .where(*conditions)
        .group_by(Transaction.type)
    ).all()
    by_type = {t: {"count": c, "amount": money(a)} for t, c, a in rows}
    return {
        "count": sum(v["count"] for v in by_type.values()),
        "total_amount": money(sum(v["amount"] for v in by_type.values())),
        "by_type": by_type,
    }


class TransactionService:

    @staticmethod
    def list(
        session: Session,
        organization_id: int,
        user_id: int,
        type: Optional[str] = None,
        membership_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        authorize(session, user_id, organization_id, MANAGERS)

        conditions = _filtered(organization_id, type, membership_id, payment_method, date_from, date_to)
        statement = select(Transaction).where(*conditions).order_by(
            Transaction.created_at.desc(), Transaction.id.desc()
        )
        result = paginate(session, statement, page, limit, serialize=transaction_to_dict)
        result["totals"] = _totals(session, conditions)
        return result

    @staticmethod
    def get(session: Session, organization_id: int, user_id: int, transaction_id: int) -> dict:
        """One transaction plus the contribution or repayment that produced it."""
        acting = authorize(session, user_id, organization_id)
        transaction = get_owned_or_404(session, Transaction, transaction_id, organization_id, "Transaction")
        if transaction.membership_id is not None:
            require_self_or_roles(acting, transaction.membership_id, MANAGERS)

        data = transaction_to_dict(transaction)
        meta = transaction.metadata_dict
        source = None
        if "contributionId" in meta:
            contribution = session.get(Contribution, meta["contributionId"])
            if contribution:
                source = {
                    "kind": "contribution",
                    "id": contribution.id,
                    "status": contribution.status,
                    "amount": contribution.amount,
                    "amount_paid": contribution.amount_paid,
                }
        elif "repaymentId" in meta:
            repayment = session.get(Repayment, meta["repaymentId"])
            if repayment:
                source = {
                    "kind": "repayment",
                    "id": repayment.id,
                    "debt_id": repayment.debt_id,
                    "amount": repayment.amount,
                }
        data["source"] = source
        return data

    @staticmethod
    def search(session: Session, organization_id: int, user_id: int, query: str) -> list:
        authorize(session, user_id, organization_id, MANAGERS)

        query = (query or "").strip()
        if len(query) < SEARCH_MIN_LENGTH:
            raise ValidationError(f"Search query must be at least {SEARCH_MIN_LENGTH} characters")

        pattern = f"%{query}%"
        rows = session.exec(
            select(Transaction)
            .where(
                Transaction.organization_id == organization_id,
                or_(Transaction.reference.ilike(pattern), Transaction.description.ilike(pattern)),
            )
            .order_by(Transaction.created_at.desc())
            .limit(SEARCH_MAX_RESULTS)
        ).all()
        return [transaction_to_dict(t) for t in rows]

    @staticmethod
    def list_by_member(
        session: Session,
        organization_id: int,
        user_id: int,
        membership_id: int,
        type: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        acting = authorize(session, user_id, organization_id)
        require_self_or_roles(acting, membership_id, ADMIN_ONLY)

        conditions = _filtered(organization_id, type=type, membership_id=membership_id)
        statement = select(Transaction).where(*conditions).order_by(
            Transaction.created_at.desc(), Transaction.id.desc()
        )
        result = paginate(session, statement, page, limit, serialize=transaction_to_dict)
        result["totals"] = _totals(session, conditions)
        return result
