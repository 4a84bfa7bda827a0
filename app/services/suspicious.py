# app/services/suspicious.py
#
# Import Review Rules
# validate_transactions: blocking checks run before a batch can be saved.
# detect_suspicious:     advisory flags shown to the user for manual review.

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List

from app.services.category_mapping import CSV_TYPE_PERSONAL_CAPITAL, UNKNOWN_CATEGORY

DUPLICATE_WINDOW_DAYS = 3
ROUND_AMOUNT_STEP = Decimal("50")
OUTLIER_FACTOR = 3
LARGE_AMOUNT_GBP = Decimal("100")
MAX_AGE_YEARS = 10

INVESTMENT_ACCOUNT_KEYWORDS = ("vanguard", "fidelity", "wealthfront", "investment", "dodl", "lisa")


def _to_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return None


def _to_date(value) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


# ---- Validation (blocking) ----

def validate_transactions(transactions: List[Dict], csv_type: str, today: date | None = None) -> Dict[int, Dict[str, str]]:
    """
    Check every row of a batch.

    Returns {row_index: {field: message}} for rows with problems; an empty
    dict means the batch can move on to review.
    """
    today = today or date.today()
    oldest_allowed = _years_before(today, MAX_AGE_YEARS)
    is_format_a = csv_type == CSV_TYPE_PERSONAL_CAPITAL

    errors: Dict[int, Dict[str, str]] = {}

    for index, tx in enumerate(transactions):
        row: Dict[str, str] = {}

        date_raw = tx.get("date")
        if not date_raw:
            row["date"] = "Date is required"
        else:
            tx_date = _to_date(date_raw)
            if tx_date is None:
                row["date"] = "Invalid date"
            elif tx_date > today:
                row["date"] = "Date cannot be in the future"
            elif tx_date < oldest_allowed:
                row["date"] = f"Date cannot be more than {MAX_AGE_YEARS} years in the past"

        if len((tx.get("description") or "").strip()) < 2:
            row["description"] = "Description must be at least 2 characters"

        if not (tx.get("category") or "").strip():
            row["category"] = "Category is required"

        if not (tx.get("account") or "").strip():
            row["account"] = "Account is required"

        amount_gbp = _to_decimal(tx.get("amount_gbp"))
        if amount_gbp is None or amount_gbp == 0:
            row["amount_gbp"] = "GBP amount must be non-zero"

        if is_format_a:
            amount_usd = _to_decimal(tx.get("amount_usd"))
            if amount_usd is None or amount_usd == 0:
                row["amount_usd"] = "USD amount must be non-zero"

        if row:
            errors[index] = row

    return errors


# ---- Detection (advisory) ----

def _is_round(amount: Decimal | None) -> bool:
    if amount is None:
        return False
    amount = abs(amount)
    return amount >= ROUND_AMOUNT_STEP and amount % ROUND_AMOUNT_STEP == 0


def _is_duplicate(index: int, tx: dict, transactions: List[Dict]) -> bool:
    amount = abs(_to_decimal(tx.get("amount_gbp")) or Decimal("0"))
    description = (tx.get("description") or "").lower()
    tx_date = _to_date(tx.get("date"))

    for other_index, other in enumerate(transactions):
        if other_index == index:
            continue
        if abs(_to_decimal(other.get("amount_gbp")) or Decimal("0")) != amount:
            continue
        if (other.get("description") or "").lower() != description:
            continue
        other_date = _to_date(other.get("date"))
        if tx_date is None or other_date is None:
            continue
        if abs((tx_date - other_date).days) <= DUPLICATE_WINDOW_DAYS:
            return True
    return False


def _category_averages(transactions: List[Dict]) -> Dict[str, Decimal]:
    totals = defaultdict(lambda: [Decimal("0"), 0])
    for tx in transactions:
        key = (tx.get("category") or "").lower()
        totals[key][0] += abs(_to_decimal(tx.get("amount_gbp")) or Decimal("0"))
        totals[key][1] += 1
    return {key: total / count for key, (total, count) in totals.items()}


def detect_suspicious(transactions: List[Dict], csv_type: str) -> List[Dict]:
    """
    Flag rows worth a second look.

    Returns copies of the flagged rows, in input order, each with
    "row_index" and the accumulated "suspicious_reasons".
    """
    is_format_a = csv_type == CSV_TYPE_PERSONAL_CAPITAL
    averages = _category_averages(transactions)
    flagged = []

    for index, tx in enumerate(transactions):
        reasons = []
        amount_gbp = _to_decimal(tx.get("amount_gbp")) or Decimal("0")
        abs_gbp = abs(amount_gbp)
        category = tx.get("category") or ""
        account = (tx.get("account") or "").lower()

        if _is_duplicate(index, tx, transactions):
            reasons.append("Possible duplicate")

        if _is_round(amount_gbp):
            reasons.append(f"Round amount (£{int(abs_gbp)})")

        if is_format_a:
            amount_usd = _to_decimal(tx.get("amount_usd"))
            if _is_round(amount_usd):
                reasons.append(f"Round amount (${int(abs(amount_usd))})")

        average = averages.get(category.lower(), Decimal("0"))
        if average > 0 and abs_gbp > OUTLIER_FACTOR * average:
            reasons.append(f"Unusually large for {category} (over {OUTLIER_FACTOR}x the category average)")

        if any(word in account for word in INVESTMENT_ACCOUNT_KEYWORDS) and category != "Investment":
            reasons.append("Investment account with non-Investment category")

        if abs_gbp > LARGE_AMOUNT_GBP:
            reasons.append(f"Large amount (over £{LARGE_AMOUNT_GBP})")

        if category == UNKNOWN_CATEGORY:
            reasons.append("Uncategorized")

        if reasons:
            item = dict(tx)
            item["row_index"] = index
            item["suspicious_reasons"] = reasons
            flagged.append(item)

    return flagged
