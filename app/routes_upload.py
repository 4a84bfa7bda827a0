# routes_upload.py
"""
Routes for the CSV upload → preview → review → save flow.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    UploadFile,
)
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from log import get_logger
from app.deps import (
    PENDING_BATCHES,
    get_db,
    get_now,
    get_today,
    get_user_id,
)
from app.schemas import ParsedTransactionEdit
from app.services.category_mapping import CSV_TYPES
from app.services.csv_import import parse_csv
from app.services.import_cleanup import cleanup_stale_batches
from app.services.import_helpers import (
    apply_edit,
    build_transaction_from_dict,
    ensure_reference_data,
    reset_edit,
    start_review,
)
from app.services.suspicious import detect_suspicious, validate_transactions

router = APIRouter(prefix="/upload", tags=["upload"])
logger = get_logger(__name__)


def _get_batch(batch_id: str, user_id: str) -> Dict[str, Any]:
    batch = PENDING_BATCHES.get(batch_id)
    if batch is None or batch.get("user_id") != user_id:
        raise HTTPException(status_code=404, detail="Upload batch not found")
    return batch


def _get_row(batch: Dict[str, Any], temp_id: str) -> Dict[str, Any]:
    tx = batch["transactions"].get(temp_id)
    if tx is None:
        raise HTTPException(status_code=404, detail="Transaction not found in batch")
    return tx


def _ordered_rows(batch: Dict[str, Any]) -> List[Dict[str, Any]]:
    rows = []
    for temp_id in batch["order"]:
        tx_data = batch["transactions"][temp_id].copy()
        tx_data["temp_id"] = temp_id
        rows.append(tx_data)
    return rows


# -------------------------------------------------------------------
# Step 1 – parse CSV → editable preview
# -------------------------------------------------------------------

@router.post("/preview")
async def upload_preview(
    csv_file: UploadFile = File(...),
    csv_type: str = Form(...),
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
):
    """
    Step 1 of the main flow:

    - Receive one statement export and its type ("personal-capital" / "moneyhub")
    - Parse it into normalized transaction dicts (bad rows are skipped)
    - Store the rows in PENDING_BATCHES[batch_id] with their review state
    - Return the batch id and the editable rows
    """
    if csv_type not in CSV_TYPES:
        raise HTTPException(status_code=422, detail=f"Unsupported CSV type: {csv_type}")

    cleanup_stale_batches(PENDING_BATCHES, get_settings().pending_batch_ttl_hours, now)

    text = (await csv_file.read()).decode("utf-8-sig", errors="replace")
    parsed = parse_csv(text, csv_type, today=today)

    batch_id = str(uuid.uuid4())
    batch = {
        "user_id": user_id,
        "csv_type": csv_type,
        "created_at": now,
        "transactions": {},
        "order": [],
    }
    for tx in parsed:
        temp_id = f"t_{uuid.uuid4().hex[:8]}"
        batch["transactions"][temp_id] = start_review(tx)
        batch["order"].append(temp_id)

    PENDING_BATCHES[batch_id] = batch
    logger.info("Batch %s: parsed %s rows from %s (%s)", batch_id, len(parsed), csv_file.filename, csv_type)

    return {
        "batch_id": batch_id,
        "csv_type": csv_type,
        "transaction_count": len(parsed),
        "transactions": _ordered_rows(batch),
    }


# -------------------------------------------------------------------
# Step 1b – edit / reset / drop rows while previewing
# -------------------------------------------------------------------

@router.patch("/{batch_id}/transactions/{temp_id}")
def edit_row(
    batch_id: str,
    temp_id: str,
    payload: ParsedTransactionEdit,
    user_id: str = Depends(get_user_id),
):
    batch = _get_batch(batch_id, user_id)
    tx = _get_row(batch, temp_id)
    apply_edit(tx, payload.model_dump(exclude_unset=True))
    batch.pop("final", None)  # changed rows need another review
    return {"temp_id": temp_id, **tx}


@router.post("/{batch_id}/transactions/{temp_id}/reset")
def reset_row(batch_id: str, temp_id: str, user_id: str = Depends(get_user_id)):
    batch = _get_batch(batch_id, user_id)
    tx = reset_edit(_get_row(batch, temp_id))
    batch.pop("final", None)
    return {"temp_id": temp_id, **tx}


@router.delete("/{batch_id}/transactions/{temp_id}")
def drop_row(batch_id: str, temp_id: str, user_id: str = Depends(get_user_id)):
    batch = _get_batch(batch_id, user_id)
    _get_row(batch, temp_id)
    del batch["transactions"][temp_id]
    batch["order"].remove(temp_id)
    batch.pop("final", None)
    return {"deleted": temp_id, "transaction_count": len(batch["order"])}


@router.delete("/{batch_id}")
def discard_batch(batch_id: str, user_id: str = Depends(get_user_id)):
    _get_batch(batch_id, user_id)
    PENDING_BATCHES.pop(batch_id, None)
    return {"deleted": batch_id}


# -------------------------------------------------------------------
# Step 2 – validate → suspicious-transaction review
# -------------------------------------------------------------------

@router.post("/{batch_id}/review")
def upload_review(
    batch_id: str,
    user_id: str = Depends(get_user_id),
    today: date = Depends(get_today),
):
    """
    Step 2 of the main flow:

    - Validate every row (blocking). Any problem returns 422 with
      {temp_id: {field: message}} and nothing moves forward.
    - Otherwise mark the batch ready to save and return the rows flagged
      for a second look (non-blocking).
    """
    batch = _get_batch(batch_id, user_id)
    rows = _ordered_rows(batch)

    errors = validate_transactions(rows, batch["csv_type"], today=today)
    if errors:
        batch.pop("final", None)
        return JSONResponse(
            status_code=422,
            content=jsonable_encoder({
                "detail": "Validation failed",
                "errors": {rows[index]["temp_id"]: fields for index, fields in errors.items()},
            }),
        )

    batch["final"] = rows
    suspicious = detect_suspicious(rows, batch["csv_type"])

    return {
        "batch_id": batch_id,
        "transaction_count": len(rows),
        "suspicious_count": len(suspicious),
        "suspicious": suspicious,
    }


# -------------------------------------------------------------------
# Step 3 – save reviewed batch into the DB
# -------------------------------------------------------------------

@router.post("/{batch_id}/save")
def save_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """
    Step 3 of the main flow:

    - Take the reviewed rows stored by /review
    - Create missing default categories / accounts and any new trips
    - Insert every row in one database transaction
    - Drop the batch from memory
    """
    batch = _get_batch(batch_id, user_id)
    final = batch.get("final")
    if final is None:
        raise HTTPException(status_code=409, detail="Batch has not passed review yet")

    logger.info("Batch %s: inserting %s transactions", batch_id, len(final))

    try:
        lookups = ensure_reference_data(db, user_id, trip_names=[tx.get("trip") for tx in final])
        orm_objects = [build_transaction_from_dict(tx, lookups, user_id) for tx in final]
        db.add_all(orm_objects)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Batch %s: insert failed: %r", batch_id, exc)
        raise HTTPException(status_code=500, detail="Failed to save transactions.")

    PENDING_BATCHES.pop(batch_id, None)
    logger.info("Batch %s: saved %s transactions", batch_id, len(orm_objects))

    return {"batch_id": batch_id, "saved": len(orm_objects)}
