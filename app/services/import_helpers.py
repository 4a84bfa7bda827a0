# app/services/import_helpers.py
#
# Import Helper Functions
# Review-state helpers for parsed rows (edit / reset), conversion of reviewed
# rows into Transaction ORM objects, flattening of stored transactions for
# the analytics layer, and month range calculation for filters.

import copy
from datetime import date, datetime
from decimal import Decimal
from typing import Dict

from sqlalchemy.orm import Session

from models import Account, Category, Transaction, Trip

from app.services.category_mapping import (
    DEFAULT_ACCOUNTS,
    DEFAULT_CATEGORIES,
    USD_TO_GBP_RATE,
)

# Fields a user may change while reviewing an import batch
EDITABLE_FIELDS = (
    "date",
    "description",
    "amount_gbp",
    "amount_usd",
    "category",
    "account",
    "encord_expensable",
    "trip",
)

_AMOUNT_FIELDS = ("amount_gbp", "amount_usd")


# ---- Review state ----

def start_review(tx: dict) -> dict:
    """Attach the edit-tracking state to a freshly parsed row (in place)."""
    tx["is_edited"] = False
    tx["original_values"] = {field: copy.copy(tx.get(field)) for field in EDITABLE_FIELDS if field in tx}
    return tx


def apply_edit(tx: dict, changes: dict) -> dict:
    """
    Apply user edits to a row under review.

    Changing amount_usd on a USD row recomputes amount_gbp at the fixed rate,
    unless amount_gbp is part of the same edit.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")

    if "original_values" not in tx:
        start_review(tx)

    for field, value in changes.items():
        if field in _AMOUNT_FIELDS and value is not None:
            value = Decimal(str(value))
        if field == "date" and isinstance(value, date):
            value = value.isoformat()
        tx[field] = value

    if (
        "amount_usd" in changes
        and "amount_gbp" not in changes
        and tx.get("currency") == "USD"
        and tx.get("amount_usd") is not None
    ):
        tx["amount_gbp"] = tx["amount_usd"] * USD_TO_GBP_RATE

    tx["is_edited"] = True
    return tx


def reset_edit(tx: dict) -> dict:
    """Restore the values the row had when it was parsed."""
    for field, value in tx.get("original_values", {}).items():
        tx[field] = copy.copy(value)
    tx["is_edited"] = False
    return tx


# ---- Reference data ----

def ensure_reference_data(db: Session, user_id: str, trip_names=()) -> Dict[str, dict]:
    """
    Make sure the default categories and accounts exist for the user, create
    any trips named in trip_names, and return name -> ORM object lookups
    (flushed, not committed).
    """
    categories = {c.name: c for c in db.query(Category).filter(Category.user_id == user_id)}
    accounts = {a.name: a for a in db.query(Account).filter(Account.user_id == user_id)}
    trips = {t.name: t for t in db.query(Trip).filter(Trip.user_id == user_id)}

    for name, category_type in DEFAULT_CATEGORIES:
        if name not in categories:
            categories[name] = Category(user_id=user_id, name=name, category_type=category_type)
            db.add(categories[name])

    for name, account_type, currency in DEFAULT_ACCOUNTS:
        if name not in accounts:
            accounts[name] = Account(user_id=user_id, name=name, account_type=account_type, currency=currency)
            db.add(accounts[name])

    for name in trip_names:
        name = (name or "").strip()
        if name and _find_by_name(trips, name) is None:
            trips[name] = Trip(user_id=user_id, name=name)
            db.add(trips[name])

    db.flush()
    return {"categories": categories, "accounts": accounts, "trips": trips}


# ---- Transaction Conversion ----

def _find_by_name(by_name: Dict[str, object], name):
    """Look up a reference row by name, ignoring case."""
    if not name:
        return None
    if name in by_name:
        return by_name[name]
    folded = {key.lower(): obj for key, obj in by_name.items()}
    return folded.get(name.strip().lower())


def build_transaction_from_dict(tx: dict, lookups: Dict[str, dict], user_id: str) -> Transaction:
    """
    Convert one reviewed tx dict (from PENDING_BATCHES[...]["transactions"])
    into a Transaction ORM object.

    lookups maps "categories" / "accounts" / "trips" to {name: ORM object}.
    Names match case-insensitively; unknown names leave the foreign key empty.
    """

    date_raw = tx.get("date")
    if isinstance(date_raw, str):
        date_parsed = datetime.strptime(date_raw, "%Y-%m-%d").date()
    else:
        date_parsed = date_raw  # already a date object

    amount_gbp = Decimal(str(tx.get("amount_gbp") or 0))
    is_usd = tx.get("currency") == "USD" and tx.get("amount_usd") is not None

    if is_usd:
        amount = Decimal(str(tx["amount_usd"]))
        exchange_rate = USD_TO_GBP_RATE
    else:
        amount = amount_gbp
        exchange_rate = Decimal("1")

    category = _find_by_name(lookups.get("categories", {}), tx.get("category"))
    account = _find_by_name(lookups.get("accounts", {}), tx.get("account"))
    trip = _find_by_name(lookups.get("trips", {}), tx.get("trip"))

    t = Transaction(
        user_id=user_id,
        date=date_parsed,
        description=(tx.get("description") or "")[:255],
        amount=amount,
        currency="USD" if is_usd else "GBP",
        exchange_rate=exchange_rate,
        amount_gbp=amount_gbp.quantize(Decimal("0.01")),
        transaction_type="income" if amount_gbp > 0 else "expense",
        encord_expensable=bool(tx.get("encord_expensable")),
        notes=tx.get("notes") or None,
        category_id=category.id if category is not None else None,
        account_id=account.id if account is not None else None,
        trip_id=trip.id if trip is not None else None,
    )

    return t


def transaction_to_dict(t: Transaction) -> dict:
    """Flatten a stored transaction (with related names) for analytics and JSON output."""
    return {
        "id": t.id,
        "date": t.date.isoformat() if t.date else None,
        "description": t.description,
        "amount": Decimal(str(t.amount)) if t.amount is not None else Decimal("0"),
        "currency": t.currency,
        "exchange_rate": Decimal(str(t.exchange_rate)) if t.exchange_rate is not None else Decimal("1"),
        "amount_gbp": Decimal(str(t.amount_gbp)) if t.amount_gbp is not None else Decimal("0"),
        "transaction_type": t.transaction_type,
        "encord_expensable": bool(t.encord_expensable),
        "notes": t.notes,
        "category_id": t.category_id,
        "category": t.category.name if t.category else None,
        "account_id": t.account_id,
        "account": t.account.name if t.account else None,
        "trip_id": t.trip_id,
        "trip": t.trip.name if t.trip else None,
        "family_member_id": t.family_member_id,
        "investment_id": t.investment_id,
    }


# ---- Date Range Utilities ----

def previous_month(today: date):
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def get_month_range(month_str: str | None, today: date | None = None):
    """
    month_str: 'YYYY-MM' or None.
    Returns (start_date, end_date_exclusive, normalized_month_str).
    If month_str is None or invalid, uses PREVIOUS month.
    """
    today = today or date.today()

    # 1) pick year/month
    year, month = previous_month(today)
    if month_str:
        try:
            year_str, month_only_str = month_str.split("-")
            if 1 <= int(month_only_str) <= 12:
                year, month = int(year_str), int(month_only_str)
        except ValueError:
            pass

    # 2) compute start and first day of next month
    start_date = date(year, month, 1)
    if month == 12:
        end_date_exclusive = date(year + 1, 1, 1)
    else:
        end_date_exclusive = date(year, month + 1, 1)

    normalized = f"{year:04d}-{month:02d}"
    return start_date, end_date_exclusive, normalized
