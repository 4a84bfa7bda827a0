# app/routes_dashboard.py

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .deps import get_db, get_today, get_user_id, load_user_transactions
from models import Category, FamilyMember
from app.services import analytics

router = APIRouter()

RECENT_TRANSACTIONS_LIMIT = 10


def _category_colors(db: Session, user_id: str) -> dict:
    rows = db.query(Category).filter(Category.user_id == user_id).all()
    return {c.name: c.color for c in rows if c.color}


def _family_members(db: Session, user_id: str) -> list:
    rows = (
        db.query(FamilyMember)
        .filter(FamilyMember.user_id == user_id)
        .order_by(FamilyMember.name)
        .all()
    )
    return [{"id": m.id, "name": m.name, "color": m.color, "status": m.status} for m in rows]


@router.get("/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    """
    Headline numbers for the current month, the current month's spend by
    category, the latest transactions and family balances.
    """
    transactions = load_user_transactions(db, user_id)

    return {
        "today": today,
        "month_label": today.strftime("%B %Y"),
        "stats": analytics.get_monthly_stats(transactions, today),
        "total_investments": analytics.get_total_investments(transactions),
        "expenses_by_category": analytics.get_current_month_expenses_by_category(
            transactions, today, _category_colors(db, user_id),
        ),
        "recent_transactions": transactions[:RECENT_TRANSACTIONS_LIMIT],
        "family_balances": analytics.get_family_balances(transactions, _family_members(db, user_id)),
    }


@router.get("/insights")
def insights(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    """All chart series for the insights page."""
    transactions = load_user_transactions(db, user_id)
    colors = _category_colors(db, user_id)

    return {
        "expenses_by_category": analytics.get_current_month_expenses_by_category(transactions, today, colors),
        "last_month_expenses_by_category": analytics.get_last_month_expenses_by_category(transactions, today, colors),
        "expenses_over_time": analytics.get_expenses_over_time(transactions),
        "income_over_time": analytics.get_income_over_time(transactions),
        "savings_over_time": analytics.get_savings_over_time(transactions),
        "investments_over_time": analytics.get_investments_over_time(transactions),
        "expenses_by_trip": analytics.get_expenses_by_trip(transactions),
    }


@router.get("/insights/investments")
def investment_contributions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    """Rolling 12 months of net investment contributions."""
    transactions = load_user_transactions(db, user_id)
    return analytics.get_investment_contribution_summary(transactions, today)
