# app/activity_routes.py

import logging
from typing import Optional

from app.config import ACTIVITY_TYPES, DEFAULT_PAGE_LIMIT, MAX_BATCH_OPERATIONS
from app.database import planners
from app.errors import NotFoundError, ValidationError
from app.models import ActivityLog
from app.permissions import require_owner, require_view
from app.utils import chunked, clamp_limit, clean_document

logger = logging.getLogger(__name__)


def log_activity(planner_id: str, user_id: str, activity_type: str, description: str,
                 metadata: Optional[dict] = None) -> dict:
    """
    Appends one event to the planner's activity log.
    Events are never edited afterwards; they only go away when the log is cleared
    or the planner is deleted.
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")

    entry = ActivityLog(
        plannerId=planner_id,
        userId=user_id,
        activityType=activity_type,
        description=description,
        metadata=metadata,
    )
    doc = planners().create(entry.model_dump(mode="json", exclude_none=True))
    logger.info("Activity '%s' logged on planner '%s' by user '%s'", activity_type, planner_id, user_id)
    return clean_document(doc)


# Newest first; entries logged in the same instant fall back to id order.
NEWEST_FIRST = [("timestamp", "DESC"), ("id", "DESC")]


def _after(cursor: dict) -> list:
    """Everything that sorts after `cursor` in NEWEST_FIRST order."""
    return [
        [("timestamp", "<", cursor["timestamp"])],
        [("timestamp", "=", cursor["timestamp"]), ("id", "<", cursor["id"])],
    ]


def _page(items: list, limit: int) -> dict:
    has_more = len(items) > limit
    items = [clean_document(item) for item in items[:limit]]
    return {
        "activities": items,
        "hasMore": has_more,
        "nextCursor": items[-1]["id"] if has_more and items else None,
    }


def get_planner_activity(planner_id: str, actor_id: str, limit=DEFAULT_PAGE_LIMIT,
                         start_after: Optional[str] = None) -> dict:
    """
    Newest-first activity of one planner.
    `start_after` is the id of the last entry of the previous page.
    """
    require_view(planner_id, actor_id)
    limit = clamp_limit(limit)

    where = []
    if start_after:
        cursor = planners().get(start_after, planner_id)
        if cursor is None or cursor.get("docType") != "activity":
            raise ValidationError("Invalid cursor", details=[{"field": "startAfter", "message": "Unknown activity id"}])
        where.append(_after(cursor))

    items = planners().query(
        "activity",
        where=where,
        order_by=NEWEST_FIRST,
        limit=limit + 1,
        partition_key=planner_id,
    )
    return _page(items, limit)


def get_user_activity(user_id: str, limit=DEFAULT_PAGE_LIMIT, start_after: Optional[str] = None) -> dict:
    """The caller's own events across every planner, newest first."""
    limit = clamp_limit(limit)

    where = [("userId", "=", user_id)]
    if start_after:
        cursor = planners().query("activity", where=[("id", "=", start_after), ("userId", "=", user_id)], limit=1)
        if not cursor:
            raise ValidationError("Invalid cursor", details=[{"field": "startAfter", "message": "Unknown activity id"}])
        where.append(_after(cursor[0]))

    items = planners().query("activity", where=where, order_by=NEWEST_FIRST, limit=limit + 1)
    return _page(items, limit)


def get_activity(activity_id: str, actor_id: str) -> dict:
    found = planners().query("activity", where=[("id", "=", activity_id)], limit=1)
    if not found:
        raise NotFoundError("Activity not found")
    entry = found[0]
    require_view(entry["plannerId"], actor_id, not_found="Activity not found")
    return clean_document(entry)


def clear_activity(planner_id: str, actor_id: str) -> int:
    """
    Owner-only. Deletes every activity entry of the planner in transactional batches.
    Returns the number of entries removed.
    """
    require_owner(planner_id, actor_id, "Only the planner owner can clear activity")

    entries = planners().query("activity", partition_key=planner_id)
    for batch in chunked([entry["id"] for entry in entries], MAX_BATCH_OPERATIONS):
        planners().execute_batch(planner_id, [("delete", entry_id) for entry_id in batch])

    logger.info("Cleared %s activity entries from planner '%s'", len(entries), planner_id)
    return len(entries)
