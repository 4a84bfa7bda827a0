"""Tests for batch validation and suspicious-row detection."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.services.suspicious import detect_suspicious, validate_transactions

TODAY = date(2024, 6, 15)


def _row(**overrides) -> dict:
    row = {
        "date": "2024-06-01",
        "description": "Coffee",
        "amount_gbp": Decimal("-3.20"),
        "currency": "GBP",
        "category": "Dining",
        "account": "HSBC Checkings",
    }
    row.update(overrides)
    return row


def test_valid_batch_has_no_errors() -> None:
    assert validate_transactions([_row(), _row(description="Tea")], "moneyhub", today=TODAY) == {}


def test_validation_messages() -> None:
    rows = [
        _row(date=""),
        _row(date="not-a-date"),
        _row(date="2024-06-16"),
        _row(date="2014-06-14"),
        _row(description=" x "),
        _row(category="", account=None),
        _row(amount_gbp=Decimal("0")),
    ]
    errors = validate_transactions(rows, "moneyhub", today=TODAY)

    assert errors[0] == {"date": "Date is required"}
    assert errors[1] == {"date": "Invalid date"}
    assert errors[2] == {"date": "Date cannot be in the future"}
    assert errors[3] == {"date": "Date cannot be more than 10 years in the past"}
    assert errors[4] == {"description": "Description must be at least 2 characters"}
    assert errors[5] == {"category": "Category is required", "account": "Account is required"}
    assert errors[6] == {"amount_gbp": "GBP amount must be non-zero"}


def test_ten_year_boundary_is_allowed() -> None:
    assert validate_transactions([_row(date="2014-06-15")], "moneyhub", today=TODAY) == {}


def test_usd_amount_required_only_for_personal_capital() -> None:
    row = _row(amount_usd=None)
    assert validate_transactions([row], "moneyhub", today=TODAY) == {}
    assert validate_transactions([row], "personal-capital", today=TODAY) == {
        0: {"amount_usd": "USD amount must be non-zero"}
    }


def test_clean_rows_are_not_flagged() -> None:
    assert detect_suspicious([_row(), _row(description="Lunch", amount_gbp=Decimal("-8.40"))], "moneyhub") == []


def test_duplicates_within_three_days() -> None:
    rows = [
        _row(date="2024-06-01", description="NETFLIX", amount_gbp=Decimal("-9.99")),
        _row(date="2024-06-04", description="netflix", amount_gbp=Decimal("9.99")),
        _row(date="2024-06-20", description="Netflix", amount_gbp=Decimal("-9.99")),
    ]
    flagged = detect_suspicious(rows, "moneyhub")

    assert [item["row_index"] for item in flagged] == [0, 1]
    assert all(item["suspicious_reasons"] == ["Possible duplicate"] for item in flagged)


def test_round_and_large_amounts() -> None:
    rows = [
        _row(description="Cash", amount_gbp=Decimal("-50.00")),
        _row(description="Laptop", amount_gbp=Decimal("-150.00")),
        _row(description="Small", amount_gbp=Decimal("-40.00")),
    ]
    flagged = detect_suspicious(rows, "moneyhub")
    reasons = {item["row_index"]: item["suspicious_reasons"] for item in flagged}

    assert reasons[0] == ["Round amount (£50)"]
    assert reasons[1] == ["Round amount (£150)", "Large amount (over £100)"]
    assert 2 not in reasons


def test_almost_round_amount_is_not_flagged() -> None:
    assert detect_suspicious([_row(description="Boots", amount_gbp=Decimal("-49.99"))], "moneyhub") == []


def test_round_usd_amount_for_personal_capital() -> None:
    row = _row(amount_usd=Decimal("-100.00"), amount_gbp=Decimal("-79.00"), currency="USD")
    flagged = detect_suspicious([row], "personal-capital")
    assert flagged[0]["suspicious_reasons"] == ["Round amount ($100)"]


def test_category_outlier() -> None:
    rows = [_row(description=f"Coffee {i}", amount_gbp=Decimal("-3.00")) for i in range(9)]
    rows.append(_row(description="Tasting menu", amount_gbp=Decimal("-95.00")))

    flagged = detect_suspicious(rows, "moneyhub")

    assert len(flagged) == 1
    assert flagged[0]["row_index"] == 9
    assert flagged[0]["suspicious_reasons"] == ["Unusually large for Dining (over 3x the category average)"]


def test_lone_row_is_never_a_category_outlier() -> None:
    row = _row(description="Tasting menu", amount_gbp=Decimal("-249.99"))
    [flagged] = detect_suspicious([row], "moneyhub")
    assert flagged["suspicious_reasons"] == ["Large amount (over £100)"]


def test_investment_account_and_uncategorized() -> None:
    rows = [
        _row(account="Vanguard", category="Transfers"),
        _row(account="Vanguard", category="Investment", description="Buy"),
        _row(category="Other / Unknown", description="Mystery"),
    ]
    flagged = detect_suspicious(rows, "moneyhub")
    reasons = {item["row_index"]: item["suspicious_reasons"] for item in flagged}

    assert reasons[0] == ["Investment account with non-Investment category"]
    assert 1 not in reasons
    assert reasons[2] == ["Uncategorized"]


def test_detection_does_not_mutate_input() -> None:
    rows = [_row(amount_gbp=Decimal("-500"))]
    detect_suspicious(rows, "moneyhub")
    assert "suspicious_reasons" not in rows[0]
