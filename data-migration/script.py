"""
This script imports historic transactions from the consolidated budget
spreadsheet export (one CSV covering every account) into the database.

Expected columns:
    Date, Account, Name, Category, Pre-conversion Amount,
    Subcategory (if any), Currency, Encord
(other columns such as "Amount (GBP)" or "Receipt" are ignored).

Account and category names are mapped through fixed tables; the
subcategory column holds the trip name. Non-GBP amounts are converted at the
fixed 0.79 rate and rounded to 2 decimals. Rows that fail to map or parse are
collected and reported; the rest are inserted in batches. Dry run is the
default: nothing is written unless --no-dry-run is passed.

Usage:
    PYTHONPATH=. python data-migration/script.py "Budget All Transactions.csv" --user-id <id> [--no-dry-run]
"""


from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from config import get_settings
from db import Base, SessionLocal, engine
from log import get_logger, init_logging
from models import Transaction
from app.services.category_mapping import USD_TO_GBP_RATE
from app.services.import_helpers import ensure_reference_data

logger = get_logger("data-migration")

REQUIRED_COLUMNS = ("Date", "Account", "Name", "Category", "Pre-conversion Amount", "Currency")

# Spreadsheet account name -> account name in the app
ACCOUNT_MAPPING = {
    "HSBC Checkings": "HSBC Checkings",
    "HSBC": "HSBC Checkings",
    "Amex UK": "Amex UK",
    "Amex Gold": "Amex Gold",
    "BofA Checkings": "BofA Checkings",
    "Capital One": "Capital One",
    "Cash Rewards": "Cash Rewards",
    "Citi AAdvantage": "Citi AAdvantage",
    "Dodl (LISA)": "Dodl (LISA)",
    "Fidelity": "Fidelity",
    "Global Money": "Global Money",
    "Travel Rewards": "Travel Rewards",
    "Vanguard": "Vanguard",
    "Wealthfront": "Wealthfront",
    "": "HSBC Checkings",
}

# Spreadsheet category -> category name in the app
CATEGORY_MAPPING = {
    "Income": "Income",
    "Bills": "Bills",
    "Groceries": "Groceries",
    "Commute": "Commute",
    "Restaurants": "Dining",
    "Extras": "Extras",
    "Personal Care": "Personal Care",
    "Investment": "Investment",
    "Transfers": "Transfers",
    "Service Charges/Fees": "Service Charges/Fees",
    "Other / Unknown": "Other / Unknown",
    "": "Other / Unknown",
}


@dataclass
class ImportReport:
    total_rows: int = 0
    processed: int = 0
    inserted: int = 0
    dry_run: bool = True
    errors: List[Tuple[int, str]] = field(default_factory=list)


def _cell(row, column: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _parse_date(value: str):
    # "30-Jun-25", "2025-06-30", "06/30/2025" (slash dates are month-first)
    if not value:
        raise ValueError("Missing date")
    return pd.to_datetime(value, dayfirst=False).date()


def _parse_amount(value: str) -> Decimal:
    s = value.replace("−", "-")
    for ch in "£$€, ":
        s = s.replace(ch, "")
    try:
        amount = Decimal(s)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "yes", "1")


def process_row(row, lookups: dict, user_id: str) -> Transaction:
    """Turn one spreadsheet row into a Transaction. Raises ValueError on bad data."""
    account_name = ACCOUNT_MAPPING.get(_cell(row, "Account"))
    if account_name is None:
        raise ValueError(f"Unknown account: {_cell(row, 'Account')}")

    category_name = CATEGORY_MAPPING.get(_cell(row, "Category"))
    if category_name is None:
        raise ValueError(f"Unknown category: {_cell(row, 'Category')}")

    description = _cell(row, "Name")
    if not description:
        raise ValueError("Missing description")

    amount = _parse_amount(_cell(row, "Pre-conversion Amount"))
    currency = (_cell(row, "Currency") or "GBP").upper()

    if currency == "GBP":
        exchange_rate = Decimal("1")
        amount_gbp = amount
    else:
        exchange_rate = USD_TO_GBP_RATE
        amount_gbp = (amount * USD_TO_GBP_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    trip_name = _cell(row, "Subcategory (if any)")
    trip = lookups["trips"].get(trip_name) if trip_name else None

    return Transaction(
        user_id=user_id,
        date=_parse_date(_cell(row, "Date")),
        description=description[:255],
        amount=amount,
        currency=currency,
        exchange_rate=exchange_rate,
        amount_gbp=amount_gbp,
        transaction_type="income" if amount >= 0 else "expense",
        encord_expensable=_parse_bool(_cell(row, "Encord")),
        category_id=lookups["categories"][category_name].id,
        account_id=lookups["accounts"][account_name].id,
        trip_id=trip.id if trip is not None else None,
    )


def import_historic_csv(
    csv_path: Path | str,
    session,
    user_id: str,
    dry_run: bool = True,
    batch_size: int = 20,
) -> ImportReport:
    """
    Read the spreadsheet export and insert its rows for user_id.

    Reference data (default categories/accounts, trips named in the file) is
    created as needed. In dry-run mode everything is rolled back at the end.
    """
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    df.columns = df.columns.str.strip()

    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"{Path(csv_path).name}: missing required columns: {sorted(missing)}")

    # drop fully empty rows
    df = df[~(df == "").all(axis=1)]

    report = ImportReport(total_rows=len(df), dry_run=dry_run)
    logger.info("Loaded %s rows from %s", report.total_rows, csv_path)

    trip_names = df.get("Subcategory (if any)", pd.Series(dtype=str)).str.strip().unique()
    lookups = ensure_reference_data(session, user_id, trip_names=[t for t in trip_names if t])

    objs: List[Transaction] = []
    for row_number, row in enumerate(df.to_dict(orient="records"), start=2):
        try:
            objs.append(process_row(row, lookups, user_id))
        except ValueError as exc:
            report.errors.append((row_number, str(exc)))
            logger.warning("Row %s: %s", row_number, exc)

    report.processed = len(objs)

    if dry_run:
        session.rollback()
        logger.info("Dry run: %s rows would be inserted, %s errors", report.processed, len(report.errors))
        return report

    try:
        # insert in batches
        for i in range(0, len(objs), batch_size):
            session.add_all(objs[i : i + batch_size])
            session.commit()
            report.inserted += len(objs[i : i + batch_size])
            logger.info("Inserted batch %s (%s rows)", i // batch_size + 1, len(objs[i : i + batch_size]))
    except Exception:
        session.rollback()
        raise

    logger.info("DONE. Total inserted: %s, errors: %s", report.inserted, len(report.errors))
    return report


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import historic transactions from the budget spreadsheet export.")
    parser.add_argument("csv_path", type=Path)
    parser.add_argument("--user-id", default=None, help="owner of the imported rows (default: DEFAULT_USER_ID)")
    parser.add_argument("--no-dry-run", action="store_true", help="actually insert the rows")
    parser.add_argument("--batch-size", type=int, default=20)
    args = parser.parse_args(argv)

    settings = get_settings()
    init_logging(level=settings.log_level)

    if not args.csv_path.exists():
        logger.error("CSV file not found: %s", args.csv_path)
        return 1

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        report = import_historic_csv(
            args.csv_path,
            session,
            args.user_id or settings.default_user_id,
            dry_run=not args.no_dry_run,
            batch_size=args.batch_size,
        )
    finally:
        session.close()

    for row_number, message in report.errors:
        logger.warning("Row %s skipped: %s", row_number, message)
    return 0 if not report.errors else 2


if __name__ == "__main__":
    sys.exit(main())
