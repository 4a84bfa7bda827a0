# routes_settings.py
"""
Routes for managing reference data: categories, accounts, trips and
family members. Income, Investment and Family Transfer categories are
protected and cannot be renamed or deleted.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from log import get_logger
from models import Account, Category, FamilyMember, Transaction, Trip
from app.deps import get_db, get_user_id
from app.schemas import AccountIn, CategoryIn, FamilyMemberIn, TripIn
from app.services.category_mapping import PROTECTED_CATEGORIES, is_protected_category

router = APIRouter(prefix="/settings", tags=["settings"])
logger = get_logger(__name__)


# -------------------------------------------------------------------
# Shared helpers
# -------------------------------------------------------------------

def _to_dict(obj) -> dict:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns if c.name != "user_id"}


def _get_owned(db: Session, model, user_id: str, obj_id: str):
    obj = db.query(model).filter(model.id == obj_id, model.user_id == user_id).first()
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{model.__name__} not found")
    return obj


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Saving %s failed: %r", what, exc)
        raise HTTPException(status_code=500, detail=f"Failed to save {what}.")


def _list(db: Session, model, user_id: str):
    rows = db.query(model).filter(model.user_id == user_id).order_by(model.name).all()
    return [_to_dict(r) for r in rows]


def _create(db: Session, model, user_id: str, data: dict, what: str):
    obj = model(user_id=user_id, **data)
    db.add(obj)
    _commit(db, what)
    db.refresh(obj)
    return _to_dict(obj)


def _update(db: Session, obj, data: dict, what: str):
    for field, value in data.items():
        setattr(obj, field, value)
    _commit(db, what)
    db.refresh(obj)
    return _to_dict(obj)


def _delete(db: Session, obj, fk_column, what: str):
    obj_id = obj.id
    # Transactions keep existing, they just lose the reference
    db.query(Transaction).filter(fk_column == obj_id).update({fk_column: None}, synchronize_session=False)
    db.delete(obj)
    _commit(db, what)
    return {"deleted": obj_id}


# -------------------------------------------------------------------
# Categories
# -------------------------------------------------------------------

@router.get("/categories")
def list_categories(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return [
        {**item, "protected": is_protected_category(item["name"])}
        for item in _list(db, Category, user_id)
    ]


def _reject_protected_name(name: str) -> None:
    """Protected names are reserved for the seeded categories, in any letter case."""
    if name.strip().lower() in {p.lower() for p in PROTECTED_CATEGORIES}:
        raise HTTPException(status_code=403, detail=f"'{name}' is a protected category name")


@router.post("/categories", status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    _reject_protected_name(payload.name)
    return _create(db, Category, user_id, payload.model_dump(), "category")


@router.put("/categories/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    category = _get_owned(db, Category, user_id, category_id)
    if is_protected_category(category.name):
        raise HTTPException(status_code=403, detail=f"'{category.name}' is a protected category")
    _reject_protected_name(payload.name)
    return _update(db, category, payload.model_dump(), "category")


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    category = _get_owned(db, Category, user_id, category_id)
    if is_protected_category(category.name):
        raise HTTPException(status_code=403, detail=f"'{category.name}' is a protected category")
    return _delete(db, category, Transaction.category_id, "category")


# -------------------------------------------------------------------
# Accounts
# -------------------------------------------------------------------

@router.get("/accounts")
def list_accounts(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _list(db, Account, user_id)


@router.post("/accounts", status_code=201)
def create_account(payload: AccountIn, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _create(db, Account, user_id, payload.model_dump(), "account")


@router.put("/accounts/{account_id}")
def update_account(
    account_id: str,
    payload: AccountIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    return _update(db, _get_owned(db, Account, user_id, account_id), payload.model_dump(), "account")


@router.delete("/accounts/{account_id}")
def delete_account(account_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _delete(db, _get_owned(db, Account, user_id, account_id), Transaction.account_id, "account")


# -------------------------------------------------------------------
# Trips
# -------------------------------------------------------------------

@router.get("/trips")
def list_trips(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _list(db, Trip, user_id)


@router.post("/trips", status_code=201)
def create_trip(payload: TripIn, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _create(db, Trip, user_id, payload.model_dump(), "trip")


@router.put("/trips/{trip_id}")
def update_trip(trip_id: str, payload: TripIn, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _update(db, _get_owned(db, Trip, user_id, trip_id), payload.model_dump(), "trip")


@router.delete("/trips/{trip_id}")
def delete_trip(trip_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _delete(db, _get_owned(db, Trip, user_id, trip_id), Transaction.trip_id, "trip")


# -------------------------------------------------------------------
# Family members
# -------------------------------------------------------------------

@router.get("/family-members")
def list_family_members(db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    return _list(db, FamilyMember, user_id)


@router.post("/family-members", status_code=201)
def create_family_member(
    payload: FamilyMemberIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    return _create(db, FamilyMember, user_id, payload.model_dump(), "family member")


@router.put("/family-members/{member_id}")
def update_family_member(
    member_id: str,
    payload: FamilyMemberIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    member = _get_owned(db, FamilyMember, user_id, member_id)
    return _update(db, member, payload.model_dump(), "family member")


@router.delete("/family-members/{member_id}")
def delete_family_member(member_id: str, db: Session = Depends(get_db), user_id: str = Depends(get_user_id)):
    member = _get_owned(db, FamilyMember, user_id, member_id)
    return _delete(db, member, Transaction.family_member_id, "family member")
