# app/services/analytics.py
#
# Dashboard / Insights Calculations
# Every chart and headline number is derived here from a flat list of
# transaction dicts (see import_helpers.transaction_to_dict). All functions
# are pure; the ones that care about "this month" take an explicit `today`.
#
# Filtering rules, each level narrowing the previous one:
#   base       -> drop Encord expensable rows and Transfers / Family Transfer
#   expense    -> base minus Income and Investment
#   income     -> base, Income only
#   investment -> base, Investment only
#   savings    -> base minus Investment (Income kept)

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

ZERO = Decimal("0")

EXCLUDED_FROM_ALL = ("Transfers", "Family Transfer")

# Fallback palettes when a category has no colour of its own
CATEGORY_FALLBACK_COLORS = (
    "hsl(220, 70%, 50%)",
    "hsl(10, 70%, 50%)",
    "hsl(120, 70%, 50%)",
    "hsl(40, 70%, 50%)",
    "hsl(280, 70%, 50%)",
    "hsl(180, 70%, 50%)",
)

TRIP_COLORS = (
    "hsl(260, 70%, 50%)",
    "hsl(30, 70%, 50%)",
    "hsl(150, 70%, 50%)",
    "hsl(200, 70%, 50%)",
    "hsl(320, 70%, 50%)",
    "hsl(80, 70%, 50%)",
)


# -------------------------------------------------------------------
# Small helpers
# -------------------------------------------------------------------

def _amount(tx: dict) -> Decimal:
    return Decimal(str(tx.get("amount_gbp") or 0))


def _category(tx: dict) -> str | None:
    return tx.get("category")


def _month_key(tx: dict) -> str:
    return str(tx.get("date"))[:7]


def _month_label(month_key: str) -> str:
    year, month = month_key.split("-")
    return date(int(year), int(month), 1).strftime("%b %Y")


def _in_month(tx: dict, year: int, month: int) -> bool:
    return _month_key(tx) == f"{year:04d}-{month:02d}"


def _shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _net_spend(transactions: Iterable[dict], key) -> Dict[str, Decimal]:
    """Per key: gross debits minus refunds. Keys with a net <= 0 are dropped."""
    sums = {}
    for tx in transactions:
        debits, refunds = sums.setdefault(key(tx), [ZERO, ZERO])
        amount = _amount(tx)
        if amount < 0:
            sums[key(tx)][0] = debits - amount
        elif amount > 0:
            sums[key(tx)][1] = refunds + amount

    return {k: debits - refunds for k, (debits, refunds) in sums.items() if debits - refunds > 0}


# -------------------------------------------------------------------
# Filters
# -------------------------------------------------------------------

def get_base_filtered(transactions: Iterable[dict]) -> List[dict]:
    return [
        tx for tx in transactions
        if tx.get("encord_expensable") is not True and _category(tx) not in EXCLUDED_FROM_ALL
    ]


def get_expense_filtered(transactions: Iterable[dict]) -> List[dict]:
    return [tx for tx in get_base_filtered(transactions) if _category(tx) not in ("Income", "Investment")]


def get_income_filtered(transactions: Iterable[dict]) -> List[dict]:
    return [tx for tx in get_base_filtered(transactions) if _category(tx) == "Income"]


def get_investment_filtered(transactions: Iterable[dict]) -> List[dict]:
    return [tx for tx in get_base_filtered(transactions) if _category(tx) == "Investment"]


def get_savings_filtered(transactions: Iterable[dict]) -> List[dict]:
    return [tx for tx in get_base_filtered(transactions) if _category(tx) != "Investment"]


# -------------------------------------------------------------------
# Category breakdown
# -------------------------------------------------------------------

def percentage_change(current: Decimal, previous: Decimal) -> float | None:
    """
    Month-over-month change in percent.

    100 when there was nothing last month but there is now; None when there
    is nothing to compare against.
    """
    if previous > 0:
        return float(round((current - previous) / previous * 100, 2))
    if previous == 0 and current > 0:
        return 100.0
    return None


def get_expenses_by_category(
    transactions: List[dict],
    year: int,
    month: int,
    category_colors: Dict[str, str] | None = None,
) -> List[dict]:
    """
    Net spend per category for one calendar month, largest first, each with
    the previous month's amount and the percentage change against it.
    """
    category_colors = category_colors or {}
    expenses = get_expense_filtered(transactions)
    prev_year, prev_month = _shift_month(year, month, -1)

    by_category = lambda tx: _category(tx) or "Uncategorized"  # noqa: E731
    current = _net_spend([tx for tx in expenses if _in_month(tx, year, month)], by_category)
    previous = _net_spend([tx for tx in expenses if _in_month(tx, prev_year, prev_month)], by_category)

    items = []
    for index, (label, amount) in enumerate(current.items()):
        previous_amount = previous.get(label, ZERO)
        items.append({
            "label": label,
            "amount": amount,
            "color": category_colors.get(label) or CATEGORY_FALLBACK_COLORS[index % len(CATEGORY_FALLBACK_COLORS)],
            "previous_amount": previous_amount,
            "change": percentage_change(amount, previous_amount),
        })

    items.sort(key=lambda item: item["amount"], reverse=True)
    return items


def get_current_month_expenses_by_category(transactions, today: date, category_colors=None):
    return get_expenses_by_category(transactions, today.year, today.month, category_colors)


def get_last_month_expenses_by_category(transactions, today: date, category_colors=None):
    year, month = _shift_month(today.year, today.month, -1)
    return get_expenses_by_category(transactions, year, month, category_colors)


# -------------------------------------------------------------------
# Time series
# -------------------------------------------------------------------

def _series(monthly: Dict[str, dict]) -> List[dict]:
    """Sort by YYYY-MM key, then attach the display label."""
    result = []
    for month_key in sorted(monthly):
        item = {"month": month_key, "label": _month_label(month_key)}
        item.update(monthly[month_key])
        result.append(item)
    return result


def get_expenses_over_time(transactions: List[dict]) -> List[dict]:
    """Monthly net spend with the per-category split."""
    by_month = defaultdict(list)
    for tx in get_expense_filtered(transactions):
        by_month[_month_key(tx)].append(tx)

    monthly = {}
    for month_key, rows in by_month.items():
        categories = _net_spend(rows, lambda tx: _category(tx) or "Uncategorized")
        monthly[month_key] = {"amount": sum(categories.values(), ZERO), "categories": categories}
    return _series(monthly)


def get_income_over_time(transactions: List[dict]) -> List[dict]:
    monthly = defaultdict(lambda: ZERO)
    for tx in get_income_filtered(transactions):
        amount = _amount(tx)
        if amount > 0:
            monthly[_month_key(tx)] += amount
    return _series({key: {"amount": value} for key, value in monthly.items()})


def get_savings_over_time(transactions: List[dict]) -> List[dict]:
    """Savings per month = income - max(0, expenses - refunds)."""
    monthly = defaultdict(lambda: {"income": ZERO, "expenses": ZERO, "refunds": ZERO})

    for tx in get_savings_filtered(transactions):
        bucket = monthly[_month_key(tx)]
        amount = _amount(tx)
        if _category(tx) == "Income":
            if amount > 0:
                bucket["income"] += amount
        elif amount < 0:
            bucket["expenses"] += -amount
        elif amount > 0:
            bucket["refunds"] += amount

    return _series({
        key: {"amount": data["income"] - max(ZERO, data["expenses"] - data["refunds"])}
        for key, data in monthly.items()
    })


def _net_invested(transactions: Iterable[dict]) -> Dict[str, Decimal]:
    # Positive amounts go into investments, negative ones are withdrawals
    invested = defaultdict(lambda: ZERO)
    withdrawn = defaultdict(lambda: ZERO)
    for tx in transactions:
        amount = _amount(tx)
        key = _month_key(tx)
        if amount > 0:
            invested[key] += amount
        elif amount < 0:
            withdrawn[key] += -amount
    return {key: invested[key] - withdrawn[key] for key in set(invested) | set(withdrawn)}


def get_investments_over_time(transactions: List[dict]) -> List[dict]:
    net = _net_invested(get_investment_filtered(transactions))
    return _series({key: {"amount": value} for key, value in net.items()})


def get_total_investments(transactions: List[dict]) -> Decimal:
    return sum(_net_invested(get_investment_filtered(transactions)).values(), ZERO)


# -------------------------------------------------------------------
# Trips
# -------------------------------------------------------------------

def get_expenses_by_trip(transactions: List[dict]) -> List[dict]:
    """All-time net spend per trip, largest first."""
    trip_rows = [tx for tx in get_expense_filtered(transactions) if tx.get("trip")]
    totals = _net_spend(trip_rows, lambda tx: tx["trip"])

    items = [
        {"label": trip, "amount": amount, "color": TRIP_COLORS[index % len(TRIP_COLORS)]}
        for index, (trip, amount) in enumerate(totals.items())
    ]
    items.sort(key=lambda item: item["amount"], reverse=True)
    return items


# -------------------------------------------------------------------
# Headline numbers
# -------------------------------------------------------------------

def get_monthly_stats(transactions: List[dict], today: date) -> dict:
    """
    total_balance: all-time sum of base-filtered amounts.
    monthly_*: current calendar month only.
    """
    base = get_base_filtered(transactions)
    current = [tx for tx in base if _in_month(tx, today.year, today.month)]

    monthly_income = sum(
        (_amount(tx) for tx in current if _category(tx) == "Income" and _amount(tx) > 0),
        ZERO,
    )

    gross_expenses = ZERO
    refunds = ZERO
    for tx in current:
        if _category(tx) in ("Income", "Investment"):
            continue
        amount = _amount(tx)
        if amount < 0:
            gross_expenses += -amount
        elif amount > 0:
            refunds += amount

    monthly_expenses = max(ZERO, gross_expenses - refunds)

    return {
        "total_balance": sum((_amount(tx) for tx in base), ZERO),
        "monthly_income": monthly_income,
        "monthly_expenses": monthly_expenses,
        "monthly_savings": monthly_income - monthly_expenses,
    }


# -------------------------------------------------------------------
# Rolling 12 months of investment contributions
# -------------------------------------------------------------------

def get_last_12_months_investment_data(transactions: List[dict], today: date) -> List[dict]:
    """Exactly 12 monthly buckets ending with the current month, empty months included."""
    net = _net_invested(get_investment_filtered(transactions))

    months = []
    for offset in range(11, -1, -1):
        year, month = _shift_month(today.year, today.month, -offset)
        key = f"{year:04d}-{month:02d}"
        months.append({"month": key, "label": _month_label(key), "amount": net.get(key, ZERO)})
    return months


def get_investment_contribution_summary(transactions: List[dict], today: date) -> dict:
    months = get_last_12_months_investment_data(transactions, today)
    total = sum((m["amount"] for m in months), ZERO)

    return {
        "months": months,
        "total": total,
        "average": total / 12,
        "highest": max(m["amount"] for m in months),
        "months_with_contributions": sum(1 for m in months if m["amount"] > 0),
    }


# -------------------------------------------------------------------
# Family balances
# -------------------------------------------------------------------

def get_family_balances(transactions: List[dict], family_members: List[dict]) -> List[dict]:
    """
    Per family member, from Family Transfer rows: total_received (positive
    amounts), total_given (debits) and balance = received - given.
    """
    rows_by_member = defaultdict(list)
    for tx in transactions:
        if _category(tx) == "Family Transfer" and tx.get("family_member_id"):
            rows_by_member[tx["family_member_id"]].append(tx)

    balances = []
    for member in family_members:
        rows = rows_by_member.get(member["id"], [])
        given = sum((-_amount(tx) for tx in rows if _amount(tx) < 0), ZERO)
        received = sum((_amount(tx) for tx in rows if _amount(tx) > 0), ZERO)
        balances.append({
            "id": member["id"],
            "name": member["name"],
            "status": member.get("status", "active"),
            "color": member.get("color"),
            "total_received": received,
            "total_given": given,
            "balance": received - given,
            "last_transaction": max((str(tx["date"]) for tx in rows), default=None),
            "transaction_count": len(rows),
        })
    return balances
