# routes_transactions.py
"""
Routes for the transactions list (filters, totals) and single / bulk edits.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from log import get_logger
from models import Account, Category, FamilyMember, Investment, Transaction, Trip
from app.deps import get_db, get_today, get_user_id
from app.schemas import (
    BulkDeleteRequest,
    BulkUpdateRequest,
    TransactionCreate,
    TransactionUpdate,
)
from app.services.bulk_ops import bulk_delete_transactions, bulk_update_transactions
from app.services.category_mapping import USD_TO_GBP_RATE
from app.services.import_helpers import get_month_range, transaction_to_dict

router = APIRouter()
logger = get_logger(__name__)


# Convert amount filters safely
def parse_optional_decimal(value: str) -> Decimal | None:
    value = value.strip()
    if value == "":
        return None
    try:
        return Decimal(value)
    except ArithmeticError:
        return None


def _get_owned_transaction(db: Session, user_id: str, tx_id: str) -> Transaction:
    tx = (
        db.query(Transaction)
        .filter(Transaction.id == tx_id, Transaction.user_id == user_id)
        .first()
    )
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


# Foreign keys a client may set on a transaction, with the model each must belong to
REFERENCE_MODELS = {
    "category_id": (Category, "Category"),
    "account_id": (Account, "Account"),
    "trip_id": (Trip, "Trip"),
    "family_member_id": (FamilyMember, "Family member"),
    "investment_id": (Investment, "Investment"),
}


def _check_references(db: Session, user_id: str, fields: dict) -> None:
    """404 unless every referenced row exists and belongs to the user."""
    for field, (model, label) in REFERENCE_MODELS.items():
        obj_id = fields.get(field)
        if obj_id is None:
            continue
        owned = db.query(model.id).filter(model.id == obj_id, model.user_id == user_id).first()
        if owned is None:
            raise HTTPException(status_code=404, detail=f"{label} not found")


def _apply_amounts(tx: Transaction, amount: Decimal, currency: str) -> None:
    """amount is in `currency`; amount_gbp follows from the fixed rate."""
    rate = USD_TO_GBP_RATE if currency == "USD" else Decimal("1")
    tx.amount = amount
    tx.currency = currency
    tx.exchange_rate = rate
    tx.amount_gbp = (amount * rate).quantize(Decimal("0.01"))


def _commit(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s: %r", message, exc)
        raise HTTPException(status_code=500, detail=f"{message}.")


@router.get("/transactions")
def list_transactions(
    month: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    search: str | None = Query(None),
    category: List[str] = Query(default=[]),
    account: List[str] = Query(default=[]),
    min_amount: str = Query(""),
    max_amount: str = Query(""),
    sort: str = Query("date"),
    dir: str = Query("desc"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    """
    Transactions for a month (default: previous month) or an explicit date
    range, with search / category / account / amount filters and the
    income, expense and net totals of the filtered set.
    """
    if start_date and end_date:
        range_start = start_date
        range_end_exclusive = end_date + timedelta(days=1)
        normalized_month = None
    else:
        range_start, range_end_exclusive, normalized_month = get_month_range(month, today)

    query = (
        db.query(Transaction)
        .outerjoin(Category, Transaction.category_id == Category.id)
        .outerjoin(Account, Transaction.account_id == Account.id)
        .filter(
            Transaction.user_id == user_id,
            Transaction.date >= range_start,
            Transaction.date < range_end_exclusive,
        )
    )

    # Search
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Transaction.description.ilike(pattern),
                Transaction.notes.ilike(pattern),
            )
        )

    # Category filter (supports "None")
    if category:
        cat_conditions = []
        for cat in category:
            if cat == "None":
                cat_conditions.append(Transaction.category_id.is_(None))
            else:
                cat_conditions.append(Category.name == cat)
        query = query.filter(or_(*cat_conditions))

    # Account filter (supports "None")
    if account:
        acc_conditions = []
        for acc in account:
            if acc == "None":
                acc_conditions.append(Transaction.account_id.is_(None))
            else:
                acc_conditions.append(Account.name == acc)
        query = query.filter(or_(*acc_conditions))

    min_amount_val = parse_optional_decimal(min_amount)
    max_amount_val = parse_optional_decimal(max_amount)

    if min_amount_val is not None:
        query = query.filter(Transaction.amount_gbp >= min_amount_val)

    if max_amount_val is not None:
        query = query.filter(Transaction.amount_gbp <= max_amount_val)

    # Totals for filtered view (before sorting)
    income_sum, expense_sum, net_sum = query.with_entities(
        func.coalesce(func.sum(case((Transaction.amount_gbp > 0, Transaction.amount_gbp), else_=0)), 0),
        func.coalesce(func.sum(case((Transaction.amount_gbp < 0, Transaction.amount_gbp), else_=0)), 0),
        func.coalesce(func.sum(Transaction.amount_gbp), 0),
    ).one()

    sort_key = sort if sort in {"date", "amount"} else "date"
    sort_dir = dir if dir in {"asc", "desc"} else "desc"
    sort_col = Transaction.amount_gbp if sort_key == "amount" else Transaction.date
    query = query.order_by(sort_col.asc() if sort_dir == "asc" else sort_col.desc())

    transactions = query.options(
        joinedload(Transaction.category),
        joinedload(Transaction.account),
        joinedload(Transaction.trip),
    ).all()

    return {
        "current_month": normalized_month,
        "start_date": range_start,
        "end_date_exclusive": range_end_exclusive,
        "transactions": [transaction_to_dict(t) for t in transactions],
        "income_sum": Decimal(str(income_sum)),
        "expense_sum": Decimal(str(expense_sum)),
        "net_sum": Decimal(str(net_sum)),
        "sort": sort_key,
        "dir": sort_dir,
    }


@router.post("/transactions", status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    data = payload.model_dump(exclude={"amount", "currency", "transaction_type"})
    _check_references(db, user_id, data)
    tx = Transaction(user_id=user_id, **data)
    _apply_amounts(tx, payload.amount, payload.currency)
    tx.transaction_type = payload.transaction_type or ("income" if tx.amount_gbp > 0 else "expense")

    db.add(tx)
    _commit(db, "Failed to save transaction")
    db.refresh(tx)
    return transaction_to_dict(tx)


@router.patch("/transactions/{tx_id}")
def update_transaction(
    tx_id: str,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """
    Partial update. transaction_type is stored as sent and is not
    re-derived from the amount.
    """
    tx = _get_owned_transaction(db, user_id, tx_id)
    changes = payload.model_dump(exclude_unset=True)
    _check_references(db, user_id, changes)

    amount = changes.pop("amount", None)
    currency = changes.pop("currency", None)
    if amount is not None or currency is not None:
        _apply_amounts(
            tx,
            amount if amount is not None else Decimal(str(tx.amount)),
            currency or tx.currency,
        )

    for field, value in changes.items():
        setattr(tx, field, value)

    _commit(db, "Failed to update transaction")
    db.refresh(tx)
    return transaction_to_dict(tx)


@router.delete("/transactions/{tx_id}")
def delete_transaction(
    tx_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    tx = _get_owned_transaction(db, user_id, tx_id)
    db.delete(tx)
    _commit(db, "Failed to delete transaction")
    return {"deleted": tx_id}


@router.post("/transactions/bulk-update")
def bulk_update(
    payload: BulkUpdateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    result = bulk_update_transactions(
        db, user_id, payload.ids, payload.property, payload.value, payload.family_member_id,
    )
    return result.to_dict()


@router.post("/transactions/bulk-delete")
def bulk_delete(
    payload: BulkDeleteRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    return bulk_delete_transactions(db, user_id, payload.ids).to_dict()
