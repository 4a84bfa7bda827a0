# app/services/bulk_ops.py
#
# Bulk edit / delete of transactions.
# Each transaction is processed and committed on its own so one bad row does
# not block the rest; the caller always gets the full per-item outcome.

from dataclasses import asdict, dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from log import get_logger
from models import Account, Category, FamilyMember, Transaction, Trip

logger = get_logger(__name__)

BULK_PROPERTIES = ("category", "account", "trip", "encord_expensable")

# Value meaning "clear this reference"
NONE_VALUE = "none"


@dataclass
class BulkFailure:
    id: str
    description: Optional[str]
    date: Optional[str]
    error: str


@dataclass
class BulkResult:
    success_count: int = 0
    failure_count: int = 0
    failures: List[BulkFailure] = field(default_factory=list)

    def add_failure(self, tx_id: str, error: str, tx: Transaction | None = None) -> None:
        self.failure_count += 1
        self.failures.append(BulkFailure(
            id=tx_id,
            description=tx.description if tx is not None else None,
            date=tx.date.isoformat() if tx is not None and tx.date else None,
            error=error,
        ))

    def to_dict(self) -> dict:
        return asdict(self)


def _owned(db: Session, model, user_id: str, obj_id: str):
    return db.query(model).filter(model.id == obj_id, model.user_id == user_id).first()


def _apply_property(db: Session, user_id: str, tx: Transaction, prop: str, value, family_member_id: str | None) -> None:
    """Set one bulk-editable property on tx. Raises ValueError for bad input."""

    if prop == "category":
        if value in (None, NONE_VALUE):
            tx.category_id = None
            return

        category = _owned(db, Category, user_id, value)
        if category is None:
            raise ValueError("Category not found")
        tx.category_id = category.id

        # Family transfers carry the member and their own type
        if family_member_id:
            if _owned(db, FamilyMember, user_id, family_member_id) is None:
                raise ValueError("Family member not found")
            tx.family_member_id = family_member_id
            tx.transaction_type = "transfer"
        elif category.name != "Family Transfer":
            tx.family_member_id = None
            tx.transaction_type = "expense"

    elif prop == "account":
        if value in (None, NONE_VALUE):
            tx.account_id = None
        elif _owned(db, Account, user_id, value) is None:
            raise ValueError("Account not found")
        else:
            tx.account_id = value

    elif prop == "trip":
        if value in (None, NONE_VALUE):
            tx.trip_id = None
        elif _owned(db, Trip, user_id, value) is None:
            raise ValueError("Trip not found")
        else:
            tx.trip_id = value

    elif prop == "encord_expensable":
        tx.encord_expensable = value is True or str(value).lower() == "true"

    else:
        raise ValueError(f"Unknown property: {prop}")


def bulk_update_transactions(
    db: Session,
    user_id: str,
    ids: List[str],
    prop: str,
    value,
    family_member_id: str | None = None,
) -> BulkResult:
    result = BulkResult()

    for tx_id in ids:
        tx = _owned(db, Transaction, user_id, tx_id)
        if tx is None:
            result.add_failure(tx_id, "Transaction not found")
            continue

        try:
            _apply_property(db, user_id, tx, prop, value, family_member_id)
            db.commit()
            result.success_count += 1
        except ValueError as exc:
            db.rollback()
            result.add_failure(tx_id, str(exc), tx)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Bulk update failed for transaction %s: %s", tx_id, exc)
            result.add_failure(tx_id, "Database error", tx)

    logger.info(
        "Bulk update of %s: %s succeeded, %s failed",
        prop, result.success_count, result.failure_count,
    )
    return result


def bulk_delete_transactions(db: Session, user_id: str, ids: List[str]) -> BulkResult:
    result = BulkResult()

    for tx_id in ids:
        tx = _owned(db, Transaction, user_id, tx_id)
        if tx is None:
            result.add_failure(tx_id, "Transaction not found")
            continue

        description = tx.description
        tx_date = tx.date
        try:
            db.delete(tx)
            db.commit()
            result.success_count += 1
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Bulk delete failed for transaction %s: %s", tx_id, exc)
            result.failure_count += 1
            result.failures.append(BulkFailure(
                id=tx_id,
                description=description,
                date=tx_date.isoformat() if tx_date else None,
                error="Database error",
            ))

    logger.info("Bulk delete: %s succeeded, %s failed", result.success_count, result.failure_count)
    return result
