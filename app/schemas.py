# app/schemas.py
# Role: Request bodies accepted by the JSON routes (pydantic v2).

"""Pydantic request models shared by the route modules."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

# -------------------------------------------------------------------
# Upload review
# -------------------------------------------------------------------


class ParsedTransactionEdit(BaseModel):
    """Fields the user may change on a parsed row before saving."""

    date: dt.date | None = None
    description: str | None = None
    amount_gbp: Decimal | None = None
    amount_usd: Decimal | None = None
    category: str | None = None
    account: str | None = None
    encord_expensable: bool | None = None
    trip: str | None = None


# -------------------------------------------------------------------
# Transactions
# -------------------------------------------------------------------


class TransactionCreate(BaseModel):
    date: dt.date
    description: str = Field(min_length=1, max_length=255)
    amount: Decimal
    currency: Literal["GBP", "USD"] = "GBP"
    transaction_type: Literal["income", "expense", "transfer"] | None = None
    category_id: str | None = None
    account_id: str | None = None
    trip_id: str | None = None
    family_member_id: str | None = None
    investment_id: str | None = None
    encord_expensable: bool = False
    notes: str | None = None


class TransactionUpdate(BaseModel):
    date: dt.date | None = None
    description: str | None = Field(default=None, min_length=1, max_length=255)
    amount: Decimal | None = None
    currency: Literal["GBP", "USD"] | None = None
    transaction_type: Literal["income", "expense", "transfer"] | None = None
    category_id: str | None = None
    account_id: str | None = None
    trip_id: str | None = None
    family_member_id: str | None = None
    investment_id: str | None = None
    encord_expensable: bool | None = None
    notes: str | None = None


class BulkUpdateRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
    property: Literal["category", "account", "trip", "encord_expensable"]
    value: str | bool | None = None
    family_member_id: str | None = None


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(min_length=1)


# -------------------------------------------------------------------
# Portfolio
# -------------------------------------------------------------------


class ExistingBalanceTicker(BaseModel):
    """One holding entered on the "add existing balance" form."""

    ticker: str = Field(min_length=1)
    investment_id: str | None = None  # set when the ticker already exists
    investment_type: str | None = None
    current_value: Decimal = Field(gt=0)
    currency: Literal["GBP", "USD"] = "GBP"
    purchase_date: dt.date
    growth_rate: Decimal = Field(gt=-100)  # total return since purchase, in percent
    override: bool = False


class ExistingBalanceRequest(BaseModel):
    account_id: str
    tickers: list[ExistingBalanceTicker] = Field(min_length=1)


class MarketValueUpdate(BaseModel):
    investment_id: str
    market_value: Decimal = Field(ge=0)
    account_id: str | None = None


class MarketValueUpdateRequest(BaseModel):
    updates: list[MarketValueUpdate] = Field(min_length=1)


# -------------------------------------------------------------------
# Settings (reference data)
# -------------------------------------------------------------------


class CategoryIn(BaseModel):
    name: str = Field(min_length=1)
    category_type: Literal["income", "expense"] = "expense"
    color: str | None = None


class AccountIn(BaseModel):
    name: str = Field(min_length=1)
    account_type: str = "checking"
    currency: Literal["GBP", "USD"] = "GBP"
    color: str | None = None


class TripIn(BaseModel):
    name: str = Field(min_length=1)
    color: str | None = None


class FamilyMemberIn(BaseModel):
    name: str = Field(min_length=1)
    color: str | None = None
    status: Literal["active", "settled", "archived"] = "active"
