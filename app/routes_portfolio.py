# routes_portfolio.py
"""
Routes for the investment portfolio: holdings, summary / allocations,
"add existing balance", manual market value updates and stale holdings.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from log import get_logger
from models import Account, Investment, InvestmentMarketValue, Transaction
from app.deps import get_db, get_now, get_today, get_user_id, load_user_transactions
from app.schemas import ExistingBalanceRequest, MarketValueUpdateRequest
from app.services import analytics
from app.services.category_mapping import USD_TO_GBP_RATE
from app.services.import_helpers import ensure_reference_data
from app.services.portfolio import (
    add_months,
    build_holdings,
    build_market_value_series,
    calculate_purchase_amount,
    get_account_allocation,
    get_asset_allocation,
    get_portfolio_summary,
    get_top_account,
    investments_needing_update,
)

router = APIRouter(prefix="/portfolio", tags=["portfolio"])
logger = get_logger(__name__)

CENT = Decimal("0.01")

# Existing valuation points this close to "now" mean the series is already there
SERIES_WINDOW_MONTHS = 3


# -------------------------------------------------------------------
# Loaders
# -------------------------------------------------------------------

def _load_investments(db: Session, user_id: str) -> List[dict]:
    rows = (
        db.query(Investment)
        .filter(Investment.user_id == user_id)
        .order_by(Investment.ticker)
        .all()
    )
    return [{"id": i.id, "ticker": i.ticker, "investment_type": i.investment_type} for i in rows]


def _load_market_values(db: Session, user_id: str) -> List[dict]:
    rows = (
        db.query(InvestmentMarketValue)
        .join(Investment, InvestmentMarketValue.investment_id == Investment.id)
        .filter(Investment.user_id == user_id)
        .all()
    )
    return [
        {
            "investment_id": p.investment_id,
            "account_id": p.account_id,
            "market_value": Decimal(str(p.market_value)),
            "updated_at": p.updated_at,
        }
        for p in rows
    ]


def _holdings(db: Session, user_id: str):
    transactions = load_user_transactions(db, user_id)
    holdings = build_holdings(
        _load_investments(db, user_id),
        transactions,
        _load_market_values(db, user_id),
    )
    return holdings, transactions


# -------------------------------------------------------------------
# Read endpoints
# -------------------------------------------------------------------

@router.get("/holdings")
def holdings(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    """Holdings grouped by ticker, each with its per-account breakdown."""
    result, _ = _holdings(db, user_id)
    return {"holdings": result}


@router.get("/summary")
def summary(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    holdings_list, transactions = _holdings(db, user_id)

    return {
        "summary": get_portfolio_summary(holdings_list),
        "asset_allocation": get_asset_allocation(holdings_list),
        "account_allocation": get_account_allocation(holdings_list),
        "top_account": get_top_account(holdings_list),
        "total_investments": analytics.get_total_investments(transactions),
        "contributions": analytics.get_investment_contribution_summary(transactions, today),
    }


@router.get("/stale")
def stale_investments(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
):
    """Investments without a valuation in the last 24 hours."""
    stale = investments_needing_update(
        _load_investments(db, user_id),
        _load_market_values(db, user_id),
        now,
    )
    return {"investments": stale}


# -------------------------------------------------------------------
# Add existing balance (composite save)
# -------------------------------------------------------------------

@router.post("/existing-balance", status_code=201)
def add_existing_balance(
    payload: ExistingBalanceRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
):
    """
    Record holdings that were bought before tracking started.

    For each ticker:
    1. override: drop this account's transactions for the investment and its
       valuation history
    2. create the investment if the ticker is new
    3. write the synthetic monthly valuation series when the ticker is new,
       overridden, or has no valuation within 3 months of now
    4. add the initial purchase transaction and a zero "Market Value Update"

    Everything is committed once at the end; any database error rolls the
    whole request back.
    """
    account = (
        db.query(Account)
        .filter(Account.id == payload.account_id, Account.user_id == user_id)
        .first()
    )
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")

    existing = {}
    for item in payload.tickers:
        if item.investment_id:
            inv = (
                db.query(Investment)
                .filter(Investment.id == item.investment_id, Investment.user_id == user_id)
                .first()
            )
            if inv is None:
                raise HTTPException(status_code=404, detail=f"Investment not found: {item.investment_id}")
            existing[item.investment_id] = inv

    created, updated = 0, 0

    try:
        investment_category = ensure_reference_data(db, user_id)["categories"]["Investment"]
        window_start = add_months(now, -SERIES_WINDOW_MONTHS)
        window_end = add_months(now, SERIES_WINDOW_MONTHS)

        for item in payload.tickers:
            ticker = item.ticker.strip().upper()
            is_usd = item.currency == "USD"
            current_value_gbp = item.current_value * USD_TO_GBP_RATE if is_usd else item.current_value
            purchase_amount = calculate_purchase_amount(
                current_value_gbp, item.purchase_date, item.growth_rate, today,
            )

            investment = existing.get(item.investment_id)
            if investment is None:
                investment = (
                    db.query(Investment)
                    .filter(Investment.user_id == user_id, Investment.ticker == ticker)
                    .first()
                )
            is_new = investment is None

            # 1. Override
            if not is_new and item.override:
                db.query(Transaction).filter(
                    Transaction.user_id == user_id,
                    Transaction.investment_id == investment.id,
                    Transaction.account_id == account.id,
                ).delete(synchronize_session=False)
                db.query(InvestmentMarketValue).filter(
                    InvestmentMarketValue.investment_id == investment.id,
                ).delete(synchronize_session=False)
                updated += 1

            # 2. Investment record
            if is_new:
                investment = Investment(user_id=user_id, ticker=ticker, investment_type=item.investment_type)
                db.add(investment)
                db.flush()
                created += 1

            # 3. Valuation series
            create_series = is_new or item.override
            if not create_series:
                in_window = (
                    db.query(InvestmentMarketValue)
                    .filter(
                        InvestmentMarketValue.investment_id == investment.id,
                        InvestmentMarketValue.updated_at >= window_start,
                        InvestmentMarketValue.updated_at <= window_end,
                    )
                    .count()
                )
                create_series = in_window == 0

            if create_series:
                points = build_market_value_series(
                    investment.id, purchase_amount, item.purchase_date, item.growth_rate, today,
                    account_id=account.id,
                )
                db.add_all(InvestmentMarketValue(**point) for point in points)

            # 4. Purchase + market value update transactions
            amount_gbp = purchase_amount.quantize(CENT)
            db.add(Transaction(
                user_id=user_id,
                date=item.purchase_date,
                description=f"Initial Purchase of {ticker}",
                amount=(purchase_amount / USD_TO_GBP_RATE).quantize(CENT) if is_usd else amount_gbp,
                currency=item.currency,
                exchange_rate=USD_TO_GBP_RATE if is_usd else Decimal("1"),
                amount_gbp=amount_gbp,
                transaction_type="expense",
                category_id=investment_category.id,
                account_id=account.id,
                investment_id=investment.id,
            ))
            db.add(Transaction(
                user_id=user_id,
                date=today,
                description=f"Market Value Update - {ticker}",
                amount=Decimal("0"),
                currency="GBP",
                exchange_rate=Decimal("1"),
                amount_gbp=Decimal("0"),
                transaction_type="expense",
                category_id=investment_category.id,
                account_id=account.id,
                investment_id=investment.id,
            ))

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Adding existing balances to account %s failed: %r", account.id, exc)
        raise HTTPException(status_code=500, detail="Failed to add existing balances.")

    logger.info(
        "Existing balances for account %s: %s ticker(s), %s new, %s overridden",
        account.name, len(payload.tickers), created, updated,
    )
    return {"processed": len(payload.tickers), "created": created, "updated": updated}


# -------------------------------------------------------------------
# Manual market value updates
# -------------------------------------------------------------------

@router.post("/market-values", status_code=201)
def update_market_values(
    payload: MarketValueUpdateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
):
    """Append a valuation point (timestamped now) for each investment."""
    ids = {u.investment_id for u in payload.updates}
    owned = {
        i.id
        for i in db.query(Investment).filter(Investment.user_id == user_id, Investment.id.in_(ids))
    }
    missing = ids - owned
    if missing:
        raise HTTPException(status_code=404, detail=f"Investment not found: {', '.join(sorted(missing))}")

    for update in payload.updates:
        db.add(InvestmentMarketValue(
            investment_id=update.investment_id,
            account_id=update.account_id,
            market_value=update.market_value.quantize(CENT),
            updated_at=now,
        ))

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Market value update failed: %r", exc)
        raise HTTPException(status_code=500, detail="Failed to update market values.")

    return {"updated": len(payload.updates)}
