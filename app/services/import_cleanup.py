# app/services/import_cleanup.py
#
# Housekeeping for the in-memory upload batches (app/deps.py:PENDING_BATCHES).
# Batches that were parsed but never saved or discarded are dropped after a TTL.

from datetime import datetime, timedelta
from typing import Any, Dict

from log import get_logger

logger = get_logger(__name__)


def cleanup_stale_batches(batches: Dict[str, Dict[str, Any]], max_age_hours: int = 24, now: datetime | None = None) -> int:
    """
    Delete upload batches older than max_age_hours.
    Returns the number of batches removed.
    """
    cutoff = (now or datetime.utcnow()) - timedelta(hours=max_age_hours)
    stale_ids = [
        batch_id
        for batch_id, batch in batches.items()
        if batch.get("created_at") is not None and batch["created_at"] < cutoff
    ]

    if not stale_ids:
        return 0

    for batch_id in stale_ids:
        del batches[batch_id]

    logger.info("Discarded %s stale upload batch(es)", len(stale_ids))
    return len(stale_ids)
