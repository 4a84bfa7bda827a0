# models.py
# Role: SQLAlchemy ORM models for the finance tracker domain.
#       Reference entities (accounts, categories, trips, family members),
#       investments with their market value history, and transactions.
#       Every table carries user_id; all reads are filtered by it.

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """A bank, card or brokerage account (e.g. "HSBC Checkings", "Vanguard")."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)

    # checking / credit / investment / brokerage ...
    account_type = Column(String, nullable=False, default="checking")
    currency = Column(String(3), nullable=False, default="GBP")
    color = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class Category(Base):
    """Canonical spending/income category. Income, Investment and Family Transfer are protected."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)

    # "income" or "expense"
    category_type = Column(String, nullable=False, default="expense")
    color = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class FamilyMember(Base):
    __tablename__ = "family_members"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)

    # active / settled / archived
    status = Column(String, nullable=False, default="active")

    created_at = Column(DateTime, default=datetime.utcnow)


class Investment(Base):
    """
    A holding identified by ticker.

    There is no account column: the account a holding lives in is inferred
    from Investment-category transactions that carry both investment_id and
    account_id (see app/services/portfolio.py:build_investment_account_index).
    """

    __tablename__ = "investments"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    ticker = Column(String, nullable=False)
    investment_type = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    market_values = relationship(
        "InvestmentMarketValue",
        back_populates="investment",
        cascade="all, delete-orphan",
    )


class InvestmentMarketValue(Base):
    """One point of an investment's valuation history; the latest point is the current value."""

    __tablename__ = "investment_market_values"

    id = Column(String(36), primary_key=True, default=_new_id)
    investment_id = Column(String(36), ForeignKey("investments.id"), nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    market_value = Column(Numeric(14, 2), nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    investment = relationship("Investment", back_populates="market_values")


class Transaction(Base):
    """
    ORM model representing a single financial transaction.

    Amounts are stored in the original currency (amount) and converted to GBP
    (amount_gbp = amount * exchange_rate) for aggregation.
    """

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)

    # Date of the transaction (bank posting date)
    date = Column(Date, nullable=False)

    # Bank-provided description / merchant name
    description = Column(String(255), nullable=False)

    # Amount in the original currency (negative = debit)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    exchange_rate = Column(Numeric(10, 6), nullable=False, default=1)

    # Same amount converted to GBP (used for every summary)
    amount_gbp = Column(Numeric(14, 2), nullable=False)

    # income / expense / transfer. Set from the sign on import, editable afterwards.
    transaction_type = Column(String, nullable=False, default="expense")

    encord_expensable = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=True)
    family_member_id = Column(String(36), ForeignKey("family_members.id"), nullable=True)
    investment_id = Column(String(36), ForeignKey("investments.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("Account")
    category = relationship("Category")
    trip = relationship("Trip")
    family_member = relationship("FamilyMember")
    investment = relationship("Investment")
