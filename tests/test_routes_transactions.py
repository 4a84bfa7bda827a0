"""Tests for the transactions list and single / bulk edits."""
from __future__ import annotations

import pytest

from models import Category
from app.services.import_helpers import ensure_reference_data


@pytest.fixture()
def refs(session, user_id):
    lookups = ensure_reference_data(session, user_id)
    session.commit()
    return {
        "categories": {name: c.id for name, c in lookups["categories"].items()},
        "accounts": {name: a.id for name, a in lookups["accounts"].items()},
    }


def _create(client, **fields):
    payload = {"date": "2024-06-10", "description": "Coffee", "amount": "-4.50"}
    payload.update(fields)
    response = client.post("/transactions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_derives_type_from_sign(client, refs) -> None:
    expense = _create(client, category_id=refs["categories"]["Dining"])
    assert expense["transaction_type"] == "expense"
    assert expense["amount_gbp"] == pytest.approx(-4.5)
    assert expense["category"] == "Dining"

    income = _create(client, description="Salary", amount="3000")
    assert income["transaction_type"] == "income"

    transfer = _create(client, description="To Mum", amount="-50", transaction_type="transfer")
    assert transfer["transaction_type"] == "transfer"


def test_create_usd_converts_at_fixed_rate(client) -> None:
    tx = _create(client, amount="-10", currency="USD")
    assert tx["currency"] == "USD"
    assert tx["amount"] == pytest.approx(-10.0)
    assert tx["amount_gbp"] == pytest.approx(-7.9)
    assert tx["exchange_rate"] == pytest.approx(0.79)


def test_create_rejects_bad_payload(client) -> None:
    response = client.post("/transactions", json={"date": "2024-06-10", "description": "", "amount": "1"})
    assert response.status_code == 422


def test_references_must_belong_to_the_user(client, session) -> None:
    secret = Category(user_id="someone-else", name="Secret Medical")
    session.add(secret)
    session.commit()

    response = client.post(
        "/transactions",
        json={"date": "2024-06-10", "description": "Pharmacy", "amount": "-20", "category_id": secret.id},
    )
    assert response.status_code == 404
    assert response.json() == {"detail": "Category not found"}

    tx = _create(client)
    patched = client.patch(f"/transactions/{tx['id']}", json={"category_id": secret.id})
    assert patched.status_code == 404
    assert client.patch(f"/transactions/{tx['id']}", json={"trip_id": "no-such-trip"}).status_code == 404


def test_update_keeps_type_as_sent(client) -> None:
    tx = _create(client)

    updated = client.patch(f"/transactions/{tx['id']}", json={"amount": "20"}).json()
    assert updated["amount_gbp"] == pytest.approx(20.0)
    assert updated["transaction_type"] == "expense"

    updated = client.patch(f"/transactions/{tx['id']}", json={"transaction_type": "income", "notes": "refund"}).json()
    assert updated["transaction_type"] == "income"
    assert updated["notes"] == "refund"


def test_delete_transaction(client) -> None:
    tx = _create(client)
    assert client.delete(f"/transactions/{tx['id']}").json() == {"deleted": tx["id"]}
    assert client.delete(f"/transactions/{tx['id']}").status_code == 404
    assert client.patch(f"/transactions/{tx['id']}", json={"notes": "x"}).status_code == 404


def test_list_defaults_to_previous_month(client) -> None:
    _create(client, date="2024-05-20", description="May row")
    _create(client, date="2024-06-02", description="June row")

    body = client.get("/transactions").json()
    assert body["current_month"] == "2024-05"
    assert [t["description"] for t in body["transactions"]] == ["May row"]


def test_list_filters_and_sorting(client, refs) -> None:
    dining = refs["categories"]["Dining"]
    groceries = refs["categories"]["Groceries"]
    hsbc = refs["accounts"]["HSBC Checkings"]

    _create(client, description="Pizza night", amount="-30", category_id=dining, account_id=hsbc)
    _create(client, description="Tesco", amount="-60", category_id=groceries, account_id=hsbc)
    _create(client, description="Mystery", amount="-5")
    _create(client, description="Salary", amount="2000", notes="June pay")

    def listing(**params):
        return client.get("/transactions", params={"month": "2024-06", **params}).json()

    assert [t["description"] for t in listing(category="Dining")["transactions"]] == ["Pizza night"]
    assert {t["description"] for t in listing(category=["None"])["transactions"]} == {"Mystery", "Salary"}
    assert {t["description"] for t in listing(account="HSBC Checkings")["transactions"]} == {"Pizza night", "Tesco"}
    assert [t["description"] for t in listing(search="pay")["transactions"]] == ["Salary"]
    assert {t["description"] for t in listing(min_amount="-40", max_amount="0")["transactions"]} == {"Pizza night", "Mystery"}

    ordered = listing(sort="amount", dir="asc")
    assert [t["description"] for t in ordered["transactions"]] == ["Tesco", "Pizza night", "Mystery", "Salary"]
    assert ordered["income_sum"] == pytest.approx(2000.0)
    assert ordered["expense_sum"] == pytest.approx(-95.0)
    assert ordered["net_sum"] == pytest.approx(1905.0)

    # unknown sort options fall back to date / desc
    fallback = listing(sort="colour", dir="sideways")
    assert (fallback["sort"], fallback["dir"]) == ("date", "desc")


def test_explicit_date_range_is_inclusive(client) -> None:
    _create(client, date="2024-06-01", description="Start")
    _create(client, date="2024-06-05", description="End")
    _create(client, date="2024-06-06", description="After")

    body = client.get("/transactions", params={"start_date": "2024-06-01", "end_date": "2024-06-05"}).json()
    assert {t["description"] for t in body["transactions"]} == {"Start", "End"}
    assert body["current_month"] is None


def test_bulk_update_and_delete(client, refs) -> None:
    ids = [_create(client, description=f"Row {i}")["id"] for i in range(3)]

    result = client.post(
        "/transactions/bulk-update",
        json={"ids": ids + ["missing"], "property": "category", "value": refs["categories"]["Bills"]},
    ).json()
    assert result["success_count"] == 3
    assert result["failure_count"] == 1
    assert result["failures"][0]["error"] == "Transaction not found"

    rows = client.get("/transactions", params={"month": "2024-06"}).json()["transactions"]
    assert {t["category"] for t in rows} == {"Bills"}

    deleted = client.post("/transactions/bulk-delete", json={"ids": ids[:2]}).json()
    assert deleted["success_count"] == 2
    assert len(client.get("/transactions", params={"month": "2024-06"}).json()["transactions"]) == 1


def test_bulk_update_rejects_unknown_property(client) -> None:
    response = client.post("/transactions/bulk-update", json={"ids": ["a"], "property": "amount", "value": "1"})
    assert response.status_code == 422

    response = client.post("/transactions/bulk-delete", json={"ids": []})
    assert response.status_code == 422
