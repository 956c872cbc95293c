import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional

from app.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from app.errors import ValidationError

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def today() -> date:
    return datetime.now(timezone.utc).date()


def trailing_window(days: int, end: Optional[date] = None):
    """
    Inclusive (start, end) ISO date strings covering `days` days ending at `end`.
    trailing_window(7) is today minus 6 days through today.
    """
    end = end or today()
    start = end - timedelta(days=days - 1)
    return start.isoformat(), end.isoformat()


def parse_iso_date(value: str, field: str = "date") -> str:
    """Validates a YYYY-MM-DD string and returns it normalized."""
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValidationError(
            f"Invalid {field}", details=[{"field": field, "message": "Expected a YYYY-MM-DD date"}]
        )


def clamp_limit(value, default: int = DEFAULT_PAGE_LIMIT, maximum: int = MAX_PAGE_LIMIT) -> int:
    if value in (None, ""):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid limit", details=[{"field": "limit", "message": "Expected an integer"}])
    return max(1, min(limit, maximum))


def clean_document(doc: dict) -> dict:
    """Drops Cosmos system properties (_rid, _etag, _ts, ...) before a document leaves the API."""
    return {key: value for key, value in doc.items() if not key.startswith("_")}


def chunked(items: List, size: int) -> Iterator[List]:
    for start in range(0, len(items), size):
        yield items[start:start + size]
