# app/deps.py
# Role: Shared application-level dependencies and globals.
#       Provides the in-memory store for CSV upload batches, the standard
#       SQLAlchemy session dependency, and the user / clock dependencies
#       that routes (and tests, via dependency_overrides) rely on.

"""
Shared dependencies and globals for the finance tracker app.
"""

from datetime import date, datetime
from typing import Any, Dict, Generator, List

from fastapi import Header
from sqlalchemy.orm import Session, joinedload

from config import get_settings
from db import SessionLocal
from models import Transaction

from app.services.import_helpers import transaction_to_dict

# -------------------------------------------------------------------
# In-memory batches for CSV import flow
# -------------------------------------------------------------------

# Temporary in-memory storage for the multi-step CSV upload.
# Each batch_id maps to the parsed rows while the user reviews them.
#
# Structure:
# PENDING_BATCHES[batch_id] = {
#     "user_id": str,
#     "csv_type": "personal-capital" | "moneyhub",
#     "created_at": datetime,
#     "transactions": {temp_id: tx_dict, ...},
#     "order": [temp_id, ...],
#     "final": [...],          # set by /review once validation passes
# }
PENDING_BATCHES: Dict[str, Dict[str, Any]] = {}

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# -------------------------------------------------------------------
# User / clock
# -------------------------------------------------------------------

def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Owner of every row read or written by the request.
    Taken from the X-User-Id header, else the configured default user.
    """
    return x_user_id or get_settings().default_user_id


def get_today() -> date:
    return date.today()


def get_now() -> datetime:
    return datetime.utcnow()


# -------------------------------------------------------------------
# Shared loaders
# -------------------------------------------------------------------

def load_user_transactions(db: Session, user_id: str) -> List[dict]:
    """All of the user's transactions, flattened with category/account/trip names."""
    rows = (
        db.query(Transaction)
        .options(
            joinedload(Transaction.category),
            joinedload(Transaction.account),
            joinedload(Transaction.trip),
        )
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.date.desc())
        .all()
    )
    return [transaction_to_dict(t) for t in rows]
