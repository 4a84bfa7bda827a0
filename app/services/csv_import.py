# app/services/csv_import.py
#
# CSV Statement Parsing
# Turns raw statement text from the two supported exporters into normalized
# transaction dicts:
#   - Personal Capital: Date, Account, Description, Category, Tags, Amount (USD)
#   - MoneyHub:         Date, Amount, Description, Category, Category2, Account (GBP)

import io
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List

import pandas as pd

from log import get_logger

from app.services.category_mapping import (
    CSV_TYPE_MONEYHUB,
    CSV_TYPE_PERSONAL_CAPITAL,
    USD_TO_GBP_RATE,
    apply_investment_override,
    map_account,
    map_category,
)

logger = get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 255
EXPECTED_COLUMNS = 6

PERSONAL_CAPITAL_FIELDS = ["date", "account", "description", "category", "tags", "amount"]
MONEYHUB_FIELDS = ["date", "amount", "description", "category", "category2", "account"]

MONTH_FIRST_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")
DAY_FIRST_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")

# "1/5/24" -> "1/5/2024"
TWO_DIGIT_YEAR = r"^(\d{1,2}/\d{1,2}/)(\d{2})$"


# ---- Low-level helpers ----

def _cell(value):
    # Fields missing from a short row arrive as None and stay None
    return None if value is None else str(value).strip()


def read_statement(text: str, fields: List[str]) -> pd.DataFrame:
    """
    Read statement text into a DataFrame with one string column per field.

    The header line is skipped and the columns are taken by position, so
    vendor header spelling does not matter. Extra trailing fields are ignored;
    missing ones are None.
    """
    try:
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            skiprows=1,
            names=fields,
            index_col=False,
            converters={name: _cell for name in fields},
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
            engine="python",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=fields)


def parse_dates(values, day_first: bool = False, today: date | None = None) -> pd.Series:
    """
    Parse statement dates into ISO strings (YYYY-MM-DD).

    Accepts MM/DD/YY, MM/DD/YYYY (DD/MM/... when day_first) and ISO dates;
    two-digit years are 20xx. Anything else becomes today's date.
    """
    values = pd.Series(values, dtype=object).str.strip()
    values = values.str.replace(TWO_DIGIT_YEAR, r"\g<1>20\2", regex=True)

    formats = DAY_FIRST_FORMATS if day_first else MONTH_FIRST_FORMATS
    parsed = pd.to_datetime(values, format=formats[0], errors="coerce")
    for fmt in formats[1:]:
        parsed = parsed.fillna(pd.to_datetime(values, format=fmt, errors="coerce"))

    parsed = parsed.fillna(pd.Timestamp(today or date.today()))
    return parsed.dt.strftime("%Y-%m-%d")


def parse_amount(value: str) -> Decimal:
    """
    Parse an amount cell ("-5.00", "1,234.56", "£45.00") into a Decimal.
    Raises ValueError when the cell is not a number.
    """
    s = (value or "").strip().replace(",", "").replace("£", "").replace("$", "")
    s = s.replace("−", "-")  # U+2212 -> '-'

    try:
        amount = Decimal(s)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def _clean_description(value: str) -> str:
    return (value or "").strip()[:MAX_DESCRIPTION_LENGTH] or "Unknown Transaction"


def _records(text: str, fields: List[str], day_first: bool, today: date | None):
    """Yield (row_number, record) for each data row, dates already parsed."""
    df = read_statement(text, fields)
    present = df.notna().sum(axis=1)
    df["date"] = parse_dates(df["date"], day_first=day_first, today=today)

    for row_number, (record, count) in enumerate(zip(df.to_dict(orient="records"), present), start=1):
        if count < EXPECTED_COLUMNS:
            logger.warning("Skipping row %s: expected %s columns, got %s", row_number, EXPECTED_COLUMNS, count)
            continue
        yield row_number, record


# ---- Vendor parsers ----

def parse_personal_capital_csv(text: str, today: date | None = None) -> List[Dict]:
    """
    Parse a Personal Capital export (amounts in USD).

    Each row gets amount_usd (as exported) and amount_gbp = amount_usd * 0.79.
    Rows that cannot be parsed are logged and skipped.
    """
    transactions = []

    for row_number, row in _records(text, PERSONAL_CAPITAL_FIELDS, day_first=False, today=today):
        try:
            amount_usd = parse_amount(row["amount"])

            account = map_account(row["account"], is_format_a=True)
            category = map_category(row["category"], True, amount_usd, row["description"])
            category = apply_investment_override(category, account)

            transactions.append({
                "date": row["date"],
                "description": _clean_description(row["description"]),
                "amount_usd": amount_usd,
                "amount_gbp": amount_usd * USD_TO_GBP_RATE,
                "currency": "USD",
                "category": category,
                "account": account,
                "encord_expensable": False,
                "trip": "",
            })
        except ValueError as exc:
            logger.warning("Skipping Personal Capital row %s: %s", row_number, exc)

    logger.info("Parsed %s Personal Capital transactions", len(transactions))
    return transactions


def parse_moneyhub_csv(text: str, today: date | None = None) -> List[Dict]:
    """
    Parse a MoneyHub export (amounts in GBP, UK day-first dates).
    Rows that cannot be parsed are logged and skipped.
    """
    transactions = []

    for row_number, row in _records(text, MONEYHUB_FIELDS, day_first=True, today=today):
        try:
            amount_gbp = parse_amount(row["amount"])

            transactions.append({
                "date": row["date"],
                "description": _clean_description(row["description"]),
                "amount_gbp": amount_gbp,
                "currency": "GBP",
                "category": map_category(row["category"], False, amount_gbp, row["description"]),
                "account": map_account(row["account"], is_format_a=False),
                "encord_expensable": False,
                "trip": "",
            })
        except ValueError as exc:
            logger.warning("Skipping MoneyHub row %s: %s", row_number, exc)

    logger.info("Parsed %s MoneyHub transactions", len(transactions))
    return transactions


PARSERS = {
    CSV_TYPE_PERSONAL_CAPITAL: parse_personal_capital_csv,
    CSV_TYPE_MONEYHUB: parse_moneyhub_csv,
}


def parse_csv(text: str, csv_type: str, today: date | None = None) -> List[Dict]:
    """Dispatch to the parser for csv_type ("personal-capital" or "moneyhub")."""
    parser = PARSERS.get(csv_type)
    if parser is None:
        raise ValueError(f"Unsupported CSV type: {csv_type}")
    return parser(text, today=today)
