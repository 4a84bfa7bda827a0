"""Tests for the portfolio endpoints."""
from __future__ import annotations

import pytest

from models import InvestmentMarketValue, Transaction
from app.services.import_helpers import ensure_reference_data


@pytest.fixture()
def accounts(session, user_id):
    lookups = ensure_reference_data(session, user_id)
    session.commit()
    return {name: a.id for name, a in lookups["accounts"].items()}


def _add_balance(client, account_id, **ticker):
    item = {
        "ticker": "vti",
        "investment_type": "Domestic Equity (US)",
        "current_value": "125",
        "purchase_date": "2023-06-15",
        "growth_rate": "25",
    }
    item.update(ticker)
    return client.post("/portfolio/existing-balance", json={"account_id": account_id, "tickers": [item]})


def test_existing_balance_creates_holding(client, session, accounts) -> None:
    response = _add_balance(client, accounts["Vanguard"])
    assert response.status_code == 201
    assert response.json() == {"processed": 1, "created": 1, "updated": 0}

    # monthly series from June 2023 to June 2024
    assert session.query(InvestmentMarketValue).count() == 13
    descriptions = {t.description for t in session.query(Transaction)}
    assert descriptions == {"Initial Purchase of VTI", "Market Value Update - VTI"}

    [holding] = client.get("/portfolio/holdings").json()["holdings"]
    assert holding["ticker"] == "VTI"
    assert holding["invested"] == pytest.approx(100.0)
    assert holding["current_value"] == pytest.approx(125.0)
    assert holding["return_percentage"] == pytest.approx(25.0)
    assert holding["accounts"][0]["account"] == "Vanguard"


def test_existing_ticker_is_reused(client, session, accounts) -> None:
    _add_balance(client, accounts["Vanguard"])
    response = _add_balance(client, accounts["Vanguard"], ticker="VTI")

    assert response.json() == {"processed": 1, "created": 0, "updated": 0}
    # recent valuations exist, so no second series
    assert session.query(InvestmentMarketValue).count() == 13

    [holding] = client.get("/portfolio/holdings").json()["holdings"]
    assert holding["invested"] == pytest.approx(200.0)


def test_override_replaces_history(client, session, accounts) -> None:
    _add_balance(client, accounts["Vanguard"])
    response = _add_balance(client, accounts["Vanguard"], current_value="110", growth_rate="10", override=True)

    assert response.json() == {"processed": 1, "created": 0, "updated": 1}
    assert session.query(InvestmentMarketValue).count() == 13

    [holding] = client.get("/portfolio/holdings").json()["holdings"]
    assert holding["invested"] == pytest.approx(100.0)
    assert holding["current_value"] == pytest.approx(110.0)


def test_usd_balance_is_converted(client, session, accounts) -> None:
    _add_balance(
        client, accounts["Fidelity"],
        ticker="FXAIX", current_value="100", currency="USD", purchase_date="2024-06-01", growth_rate="0",
    )
    purchase = session.query(Transaction).filter(Transaction.description == "Initial Purchase of FXAIX").one()

    assert float(purchase.amount_gbp) == pytest.approx(79.0)
    assert float(purchase.amount) == pytest.approx(100.0)
    assert purchase.currency == "USD"


def test_existing_balance_unknown_references(client, accounts) -> None:
    assert _add_balance(client, "no-such-account").status_code == 404
    assert _add_balance(client, accounts["Vanguard"], investment_id="no-such-investment").status_code == 404


def test_existing_balance_rejects_non_positive_value(client, accounts) -> None:
    assert _add_balance(client, accounts["Vanguard"], current_value="0").status_code == 422


def test_existing_balance_rejects_total_loss(client, accounts) -> None:
    assert _add_balance(client, accounts["Vanguard"], growth_rate="-100").status_code == 422
    assert _add_balance(client, accounts["Vanguard"], growth_rate="-150").status_code == 422


def test_summary(client, accounts) -> None:
    _add_balance(client, accounts["Vanguard"])
    _add_balance(client, accounts["Fidelity"], ticker="GLD", investment_type="Commodities / Precious Metals", growth_rate="0", current_value="50")
    _add_balance(client, accounts["Wealthfront"], ticker="CASHX", investment_type="Cash", growth_rate="0", current_value="500")

    body = client.get("/portfolio/summary").json()

    assert body["summary"]["holdings_count"] == 3
    assert body["summary"]["total_portfolio_value"] == pytest.approx(675.0)
    assert body["summary"]["total_invested"] == pytest.approx(650.0)

    assert [a["label"] for a in body["asset_allocation"]] == ["Domestic Equity (US)", "Commodities / Precious Metals"]
    assert body["top_account"]["label"] == "Wealthfront"
    assert body["total_investments"] == pytest.approx(650.0)
    assert len(body["contributions"]["months"]) == 12


def test_market_values_and_stale_list(client, accounts, now) -> None:
    _add_balance(client, accounts["Vanguard"])
    [holding] = client.get("/portfolio/holdings").json()["holdings"]
    investment_id = holding["accounts"][0]["investment_id"]

    # the series ends today at midnight, within the last 24 hours
    assert client.get("/portfolio/stale").json() == {"investments": []}

    response = client.post(
        "/portfolio/market-values",
        json={"updates": [{"investment_id": investment_id, "market_value": "140"}]},
    )
    assert response.status_code == 201
    assert response.json() == {"updated": 1}

    [holding] = client.get("/portfolio/holdings").json()["holdings"]
    assert holding["current_value"] == pytest.approx(140.0)
    assert holding["last_updated"] == now.isoformat()

    missing = client.post(
        "/portfolio/market-values",
        json={"updates": [{"investment_id": "nope", "market_value": "1"}]},
    )
    assert missing.status_code == 404


def test_stale_lists_old_valuations(client, accounts) -> None:
    _add_balance(client, accounts["Vanguard"], purchase_date="2024-01-10", growth_rate="5")

    stale = client.get("/portfolio/stale").json()["investments"]
    assert [inv["ticker"] for inv in stale] == ["VTI"]
