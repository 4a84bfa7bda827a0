# app/services/portfolio.py
#
# Portfolio Valuation
# - Back-calculates a purchase amount from a current value and total return
# - Builds the synthetic monthly valuation series stored for existing balances
# - Reconstructs investment -> account links from Investment transactions
# - Aggregates holdings into summary, asset and account allocations
#
# Inputs are plain dicts (see routes_portfolio for how they are loaded).

import calendar
from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List

from app.services.category_mapping import (
    EXCLUDED_FROM_PORTFOLIO_BREAKDOWN,
    INVESTMENT_TYPE_COLORS,
)

CENT = Decimal("0.01")
MARKET_VALUE_STALE_AFTER = timedelta(hours=24)


# ---- Date arithmetic ----

def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (day of month ignored)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


# ---- Valuation maths ----

def calculate_purchase_amount(current_value, purchase_date: date, total_growth_rate, today: date) -> Decimal:
    """
    What was paid originally, given today's value and the total return (in %)
    since purchase. £125 at +25% -> £100.
    """
    current = Decimal(str(current_value))
    growth = Decimal(str(total_growth_rate))
    if growth <= -100:
        raise ValueError(f"Total growth must be above -100%, got {growth}%")

    if months_between(purchase_date, today) <= 0 or growth == 0:
        return current
    return current / (1 + growth / 100)


def monthly_growth_rate(total_growth_rate, months: int) -> float:
    """Monthly compound rate r with (1 + r) ** months == 1 + total_growth_rate / 100."""
    if float(total_growth_rate) <= -100:
        raise ValueError(f"Total growth must be above -100%, got {total_growth_rate}%")
    if months <= 0:
        return 0.0
    return (1 + float(total_growth_rate) / 100) ** (1 / months) - 1


def build_market_value_series(
    investment_id: str,
    purchase_amount,
    purchase_date: date,
    total_growth_rate,
    today: date,
    account_id: str | None = None,
) -> List[dict]:
    """
    One valuation point per month from purchase_date up to today, inclusive.

    These are interpolated values, not observed prices: point i is
    purchase_amount * (1 + r) ** i with r from monthly_growth_rate().
    """
    months = max(months_between(purchase_date, today), 0)
    rate = monthly_growth_rate(total_growth_rate, months)
    purchase = float(purchase_amount)

    points = []
    for i in range(months + 1):
        point_date = add_months(purchase_date, i)
        value = purchase * (1 + rate) ** i
        points.append({
            "investment_id": investment_id,
            "account_id": account_id,
            "market_value": Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP),
            "updated_at": datetime.combine(point_date, datetime.min.time()),
        })
    return points


# ---- Investment <-> account links ----

def build_investment_account_index(transactions: Iterable[dict]) -> Dict[str, str]:
    """
    investment_id -> account_id, from Investment-category transactions.
    The first account seen for an investment wins.
    """
    index: Dict[str, str] = {}
    for tx in transactions:
        if tx.get("category") != "Investment":
            continue
        investment_id = tx.get("investment_id")
        account_id = tx.get("account_id")
        if investment_id and account_id and investment_id not in index:
            index[investment_id] = account_id
    return index


def latest_market_values(points: Iterable[dict]) -> Dict[str, dict]:
    """Latest valuation point per investment_id."""
    latest: Dict[str, dict] = {}
    for point in points:
        current = latest.get(point["investment_id"])
        if current is None or point["updated_at"] > current["updated_at"]:
            latest[point["investment_id"]] = point
    return latest


# ---- Holdings ----

def _return_percentage(value: Decimal, invested: Decimal) -> float:
    if invested == 0:
        return 0.0
    return float(round((value - invested) / invested * 100, 2))


def build_holdings(
    investments: List[dict],
    transactions: List[dict],
    market_values: List[dict],
) -> List[dict]:
    """
    Group investments by ticker with a per-account breakdown.

    Invested = net Investment-category amount_gbp for the investment;
    current value = latest valuation point (falls back to invested).
    Investments that no transaction links to an account are skipped.
    """
    account_index = build_investment_account_index(transactions)
    latest = latest_market_values(market_values)

    account_names = {}
    invested_by_investment: Dict[str, Decimal] = {}
    for tx in transactions:
        if tx.get("account_id") and tx.get("account"):
            account_names.setdefault(tx["account_id"], tx["account"])
        if tx.get("category") == "Investment" and tx.get("investment_id"):
            invested_by_investment[tx["investment_id"]] = (
                invested_by_investment.get(tx["investment_id"], Decimal("0"))
                + Decimal(str(tx.get("amount_gbp") or 0))
            )

    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for inv in investments:
        account_id = account_index.get(inv["id"])
        if account_id is None:
            continue

        invested = invested_by_investment.get(inv["id"], Decimal("0"))
        point = latest.get(inv["id"])
        value = Decimal(str(point["market_value"])) if point else invested

        ticker = inv["ticker"].upper()
        holding = grouped.setdefault(ticker, {
            "ticker": ticker,
            "investment_type": inv.get("investment_type"),
            "current_value": Decimal("0"),
            "invested": Decimal("0"),
            "last_updated": None,
            "accounts": [],
        })
        holding["current_value"] += value
        holding["invested"] += invested

        last_updated = point["updated_at"] if point else None
        if last_updated and (holding["last_updated"] is None or last_updated > holding["last_updated"]):
            holding["last_updated"] = last_updated

        holding["accounts"].append({
            "investment_id": inv["id"],
            "account_id": account_id,
            "account": account_names.get(account_id),
            "current_value": value,
            "invested": invested,
            "total_return": value - invested,
            "return_percentage": _return_percentage(value, invested),
            "last_updated": last_updated,
        })

    holdings = list(grouped.values())
    for holding in holdings:
        holding["total_return"] = holding["current_value"] - holding["invested"]
        holding["return_percentage"] = _return_percentage(holding["current_value"], holding["invested"])

    holdings.sort(key=lambda h: h["current_value"], reverse=True)
    return holdings


def get_portfolio_summary(holdings: List[dict]) -> dict:
    total_value = sum((h["current_value"] for h in holdings), Decimal("0"))
    total_invested = sum((h["invested"] for h in holdings), Decimal("0"))
    updates = [h["last_updated"] for h in holdings if h["last_updated"] is not None]

    return {
        "total_portfolio_value": total_value,
        "total_invested": total_invested,
        "total_return": total_value - total_invested,
        "return_percentage": _return_percentage(total_value, total_invested),
        "holdings_count": len(holdings),
        "last_updated": max(updates) if updates else None,
    }


def _allocation(amounts: Dict[str, Decimal], colors: Dict[str, str] | None = None) -> List[dict]:
    total = sum(amounts.values(), Decimal("0"))
    items = [
        {
            "label": label,
            "amount": amount,
            "percentage": float(round(amount / total * 100, 2)) if total > 0 else 0.0,
            "color": (colors or {}).get(label),
        }
        for label, amount in amounts.items()
        if amount > 0
    ]
    items.sort(key=lambda item: item["amount"], reverse=True)
    return items


def get_asset_allocation(holdings: List[dict]) -> List[dict]:
    """Current value per investment type. Cash-like types are left out."""
    amounts: Dict[str, Decimal] = {}
    for h in holdings:
        investment_type = h.get("investment_type") or "Other"
        if investment_type in EXCLUDED_FROM_PORTFOLIO_BREAKDOWN:
            continue
        amounts[investment_type] = amounts.get(investment_type, Decimal("0")) + h["current_value"]
    return _allocation(amounts, INVESTMENT_TYPE_COLORS)


def get_account_allocation(holdings: List[dict]) -> List[dict]:
    amounts: Dict[str, Decimal] = {}
    for h in holdings:
        for entry in h["accounts"]:
            name = entry["account"] or entry["account_id"]
            amounts[name] = amounts.get(name, Decimal("0")) + entry["current_value"]
    return _allocation(amounts)


def get_top_account(holdings: List[dict]) -> dict | None:
    allocation = get_account_allocation(holdings)
    return allocation[0] if allocation else None


def investments_needing_update(investments: List[dict], market_values: List[dict], now: datetime) -> List[dict]:
    """Investments whose latest valuation is missing or older than 24 hours."""
    latest = latest_market_values(market_values)
    cutoff = now - MARKET_VALUE_STALE_AFTER

    stale = []
    for inv in investments:
        point = latest.get(inv["id"])
        if point is None or point["updated_at"] < cutoff:
            stale.append(inv)
    return stale
