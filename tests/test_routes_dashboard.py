"""Tests for the dashboard and insights endpoints."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from models import FamilyMember, Transaction
from app.services.import_helpers import ensure_reference_data


@pytest.fixture()
def seeded(session, user_id):
    lookups = ensure_reference_data(session, user_id, trip_names=["Lisbon"])
    cats = lookups["categories"]
    hsbc = lookups["accounts"]["HSBC Checkings"]
    cats["Dining"].color = "#aa0000"

    member = FamilyMember(user_id=user_id, name="Mum", color="#00ff00")
    session.add(member)
    session.flush()

    def add(day, amount, category, **extra):
        session.add(Transaction(
            user_id=user_id,
            date=day,
            description=f"{category} {day.isoformat()}",
            amount=Decimal(amount),
            currency="GBP",
            exchange_rate=Decimal("1"),
            amount_gbp=Decimal(amount),
            transaction_type="income" if Decimal(amount) > 0 else "expense",
            category_id=cats[category].id,
            account_id=hsbc.id,
            **extra,
        ))

    add(date(2024, 6, 1), "3000.00", "Income")
    add(date(2024, 6, 2), "-100.00", "Groceries")
    add(date(2024, 6, 3), "-40.00", "Dining", trip_id=lookups["trips"]["Lisbon"].id)
    add(date(2024, 6, 4), "-500.00", "Investment")
    add(date(2024, 6, 5), "-200.00", "Family Transfer", family_member_id=member.id)
    add(date(2024, 5, 10), "2800.00", "Income")
    add(date(2024, 5, 11), "-20.00", "Dining")
    add(date(2024, 5, 12), "300.00", "Investment")
    session.commit()
    return member


def test_dashboard(client, seeded) -> None:
    body = client.get("/dashboard").json()

    assert body["today"] == "2024-06-15"
    assert body["month_label"] == "June 2024"

    stats = body["stats"]
    assert stats["monthly_income"] == pytest.approx(3000.0)
    assert stats["monthly_expenses"] == pytest.approx(140.0)
    assert stats["monthly_savings"] == pytest.approx(2860.0)

    assert body["total_investments"] == pytest.approx(-200.0)

    categories = {item["label"]: item for item in body["expenses_by_category"]}
    assert categories["Groceries"]["amount"] == pytest.approx(100.0)
    assert categories["Dining"]["color"] == "#aa0000"
    assert categories["Dining"]["change"] == pytest.approx(100.0)

    recent = body["recent_transactions"]
    assert len(recent) == 8
    assert recent[0]["date"] == "2024-06-05"

    [mum] = body["family_balances"]
    assert mum["name"] == "Mum"
    assert mum["total_given"] == pytest.approx(200.0)
    assert mum["balance"] == pytest.approx(-200.0)


def test_dashboard_for_new_user_is_empty(client) -> None:
    body = client.get("/dashboard").json()
    assert body["stats"]["total_balance"] == 0
    assert body["expenses_by_category"] == []
    assert body["recent_transactions"] == []
    assert body["family_balances"] == []


def test_insights(client, seeded) -> None:
    body = client.get("/insights").json()

    assert [p["month"] for p in body["expenses_over_time"]] == ["2024-05", "2024-06"]
    assert body["expenses_over_time"][1]["amount"] == pytest.approx(140.0)
    assert [p["amount"] for p in body["income_over_time"]] == pytest.approx([2800.0, 3000.0])
    assert body["savings_over_time"][0]["amount"] == pytest.approx(2780.0)
    assert [p["amount"] for p in body["investments_over_time"]] == pytest.approx([300.0, -500.0])
    assert body["expenses_by_trip"][0]["label"] == "Lisbon"
    assert {item["label"] for item in body["last_month_expenses_by_category"]} == {"Dining"}


def test_investment_contributions(client, seeded) -> None:
    body = client.get("/insights/investments").json()

    assert len(body["months"]) == 12
    assert body["total"] == pytest.approx(-200.0)
    assert body["highest"] == pytest.approx(300.0)
    assert body["months_with_contributions"] == 1
