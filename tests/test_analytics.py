"""Tests for the dashboard / insights calculations."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.services import analytics

TODAY = date(2024, 6, 15)


def tx(day: str, amount: str, category: str | None, **extra) -> dict:
    row = {"date": day, "amount_gbp": Decimal(amount), "category": category, "encord_expensable": False}
    row.update(extra)
    return row


@pytest.fixture()
def transactions() -> list:
    return [
        # June 2024
        tx("2024-06-01", "3000.00", "Income"),
        tx("2024-06-02", "-100.00", "Groceries"),
        tx("2024-06-03", "20.00", "Groceries"),
        tx("2024-06-04", "-50.00", "Dining", trip="Lisbon"),
        tx("2024-06-05", "-500.00", "Investment"),
        tx("2024-06-06", "1000.00", "Investment"),
        tx("2024-06-07", "-250.00", "Transfers"),
        tx("2024-06-08", "-75.00", "Extras", encord_expensable=True),
        # May 2024
        tx("2024-05-10", "2500.00", "Income"),
        tx("2024-05-11", "-40.00", "Groceries"),
        tx("2024-05-12", "-30.00", "Dining", trip="Lisbon"),
        tx("2024-05-13", "200.00", "Investment"),
        # Older
        tx("2023-07-01", "300.00", "Investment"),
        tx("2023-06-30", "999.00", "Investment"),
    ]


def test_filters(transactions) -> None:
    base = analytics.get_base_filtered(transactions)
    assert all(t["category"] != "Transfers" for t in base)
    assert all(not t["encord_expensable"] for t in base)

    expenses = analytics.get_expense_filtered(transactions)
    assert {t["category"] for t in expenses} == {"Groceries", "Dining"}

    assert len(analytics.get_income_filtered(transactions)) == 2
    assert len(analytics.get_investment_filtered(transactions)) == 5
    assert all(t["category"] != "Investment" for t in analytics.get_savings_filtered(transactions))


def test_percentage_change() -> None:
    assert analytics.percentage_change(Decimal("150"), Decimal("100")) == 50.0
    assert analytics.percentage_change(Decimal("80"), Decimal("0")) == 100.0
    assert analytics.percentage_change(Decimal("0"), Decimal("0")) is None
    assert analytics.percentage_change(Decimal("10"), Decimal("30")) == pytest.approx(-66.67)


def test_expenses_by_category_nets_refunds(transactions) -> None:
    items = analytics.get_current_month_expenses_by_category(transactions, TODAY, {"Dining": "#ff0000"})

    assert [item["label"] for item in items] == ["Groceries", "Dining"]
    groceries, dining = items

    assert groceries["amount"] == Decimal("80.00")
    assert groceries["previous_amount"] == Decimal("40.00")
    assert groceries["change"] == 100.0
    assert groceries["color"].startswith("hsl(")

    assert dining["amount"] == Decimal("50.00")
    assert dining["color"] == "#ff0000"
    assert dining["change"] == pytest.approx(66.67)


def test_last_month_expenses_by_category(transactions) -> None:
    items = analytics.get_last_month_expenses_by_category(transactions, TODAY)
    assert {item["label"]: item["amount"] for item in items} == {
        "Groceries": Decimal("40.00"),
        "Dining": Decimal("30.00"),
    }


def test_category_with_only_refunds_is_dropped() -> None:
    rows = [tx("2024-06-02", "15.00", "Extras")]
    assert analytics.get_expenses_by_category(rows, 2024, 6) == []


def test_expenses_over_time(transactions) -> None:
    series = analytics.get_expenses_over_time(transactions)

    assert [point["month"] for point in series] == ["2024-05", "2024-06"]
    assert series[0]["label"] == "May 2024"
    assert series[1]["amount"] == Decimal("130.00")
    assert series[1]["categories"] == {"Groceries": Decimal("80.00"), "Dining": Decimal("50.00")}


def test_expenses_over_time_is_repeatable(transactions) -> None:
    assert analytics.get_expenses_over_time(transactions) == analytics.get_expenses_over_time(transactions)


def test_income_and_savings_over_time(transactions) -> None:
    income = analytics.get_income_over_time(transactions)
    assert [(p["month"], p["amount"]) for p in income] == [
        ("2024-05", Decimal("2500.00")),
        ("2024-06", Decimal("3000.00")),
    ]

    savings = {p["month"]: p["amount"] for p in analytics.get_savings_over_time(transactions)}
    assert savings["2024-06"] == Decimal("2870.00")
    assert savings["2024-05"] == Decimal("2430.00")


def test_investments_over_time_and_total(transactions) -> None:
    series = {p["month"]: p["amount"] for p in analytics.get_investments_over_time(transactions)}
    assert series["2024-06"] == Decimal("500.00")
    assert series["2024-05"] == Decimal("200.00")

    assert analytics.get_total_investments(transactions) == Decimal("1999.00")


def test_expenses_by_trip(transactions) -> None:
    items = analytics.get_expenses_by_trip(transactions)
    assert len(items) == 1
    assert items[0]["label"] == "Lisbon"
    assert items[0]["amount"] == Decimal("80.00")


def test_monthly_stats(transactions) -> None:
    stats = analytics.get_monthly_stats(transactions, TODAY)

    assert stats["monthly_income"] == Decimal("3000.00")
    assert stats["monthly_expenses"] == Decimal("130.00")
    assert stats["monthly_savings"] == Decimal("2870.00")
    # everything except the transfer and the expensable row
    assert stats["total_balance"] == Decimal("7299.00")


def test_rolling_twelve_months(transactions) -> None:
    months = analytics.get_last_12_months_investment_data(transactions, TODAY)

    assert len(months) == 12
    assert months[0]["month"] == "2023-07"
    assert months[-1]["month"] == "2024-06"
    assert months[0]["amount"] == Decimal("300.00")
    assert months[5]["amount"] == Decimal("0")

    summary = analytics.get_investment_contribution_summary(transactions, TODAY)
    assert summary["total"] == Decimal("1000.00")
    assert summary["highest"] == Decimal("500.00")
    assert summary["months_with_contributions"] == 3
    assert summary["average"] == Decimal("1000.00") / 12


def test_rolling_window_crosses_year_boundary() -> None:
    months = analytics.get_last_12_months_investment_data([], date(2024, 1, 31))
    assert months[0]["month"] == "2023-02"
    assert months[-1]["label"] == "Jan 2024"


def test_family_balances() -> None:
    rows = [
        tx("2024-06-01", "-200.00", "Family Transfer", family_member_id="m1"),
        tx("2024-06-10", "50.00", "Family Transfer", family_member_id="m1"),
        tx("2024-06-11", "-10.00", "Dining", family_member_id="m1"),
    ]
    members = [
        {"id": "m1", "name": "Mum", "status": "active", "color": "#123456"},
        {"id": "m2", "name": "Dad"},
    ]
    mum, dad = analytics.get_family_balances(rows, members)

    assert mum["total_given"] == Decimal("200.00")
    assert mum["total_received"] == Decimal("50.00")
    assert mum["balance"] == Decimal("-150.00")
    assert mum["transaction_count"] == 2
    assert mum["last_transaction"] == "2024-06-10"

    assert dad["balance"] == Decimal("0")
    assert dad["last_transaction"] is None
    assert dad["status"] == "active"
