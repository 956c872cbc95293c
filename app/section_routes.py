# app/section_routes.py

import logging
from typing import List, Optional

from app.activity_routes import log_activity
from app.config import MAX_BATCH_OPERATIONS, SECTIONS_BY_TYPE_LIMIT
from app.database import conditional_update, planners
from app.errors import NotFoundError, ValidationError
from app.models import (
    BulkUpdateItem,
    Section,
    SectionCreate,
    SectionOrder,
    SectionType,
    SectionUpdate,
    validate_section_content,
)
from app.permissions import require_edit, require_view, resolve_section
from app.utils import clean_document, parse_iso_date, utc_now

logger = logging.getLogger(__name__)


def _apply_update(section: dict, patch: SectionUpdate, actor_id: str) -> dict:
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    if "content" in changes:
        changes["content"] = validate_section_content(section["type"], changes["content"])
    section.update(changes)
    section["updatedAt"] = utc_now()
    section["updatedBy"] = actor_id
    return section


def _check_batch_size(entries: list, field: str) -> None:
    if len(entries) > MAX_BATCH_OPERATIONS:
        raise ValidationError(
            "Too many sections in one request",
            details=[{"field": field, "message": f"At most {MAX_BATCH_OPERATIONS} sections per request"}],
        )


def _check_unique_ids(section_ids: List[str], field: str) -> None:
    repeated = sorted({section_id for section_id in section_ids if section_ids.count(section_id) > 1})
    if repeated:
        raise ValidationError(
            "Duplicate section ids in one request",
            details=[{"field": field, "message": f"Section {section_id} is listed more than once"}
                     for section_id in repeated],
        )


def _reload(section_id: str, planner_id: str) -> dict:
    section = planners().get(section_id, planner_id)
    if section is None or section.get("docType") != "section":
        raise NotFoundError("Section not found")
    return section


def _load_for_batch(planner_id: str, section_ids: List[str]) -> dict:
    """Reads every section of a batch; each one must belong to `planner_id`."""
    loaded = {}
    for section_id in section_ids:
        section = planners().get(section_id, planner_id)
        if section is None or section.get("docType") != "section":
            raise NotFoundError(f"Section {section_id} not found")
        loaded[section_id] = section
    return loaded


def create_section(planner_id: str, actor_id: str, data: SectionCreate) -> dict:
    """
    Adds a section to a planner day. Title defaults to the section type and
    content to the empty shape for that type.
    """
    require_edit(planner_id, actor_id)

    section = Section(
        plannerId=planner_id,
        date=data.date.isoformat(),
        type=data.type,
        title=data.title or data.type,
        content=validate_section_content(data.type, data.content),
        order=data.order,
        isCollapsed=data.isCollapsed,
        createdBy=actor_id,
    )
    doc = planners().create(section.model_dump(mode="json", exclude_none=True))

    log_activity(planner_id, actor_id, "section_created", f"Added {section.title} section",
                 {"sectionId": section.id, "date": section.date})
    logger.info("Section '%s' (%s) created in planner '%s'", section.id, section.type, planner_id)
    return clean_document(doc)


def get_section(section_id: str, actor_id: str) -> dict:
    section = resolve_section(section_id)
    require_view(section["plannerId"], actor_id, not_found="Section not found")
    return clean_document(section)


def list_sections(planner_id: str, actor_id: str, date: str) -> List[dict]:
    require_view(planner_id, actor_id)
    docs = planners().query(
        "section",
        where=[("date", "=", parse_iso_date(date))],
        order_by=[("order", "ASC")],
        partition_key=planner_id,
    )
    return [clean_document(doc) for doc in docs]


def list_sections_in_range(planner_id: str, actor_id: str, start: str, end: str) -> List[dict]:
    """Sections dated start..end inclusive, by date and then order."""
    start = parse_iso_date(start, "start")
    end = parse_iso_date(end, "end")
    if start > end:
        raise ValidationError("Invalid date range", details=[{"field": "start", "message": "start must not be after end"}])

    require_view(planner_id, actor_id)
    docs = planners().query(
        "section",
        where=[("date", ">=", start), ("date", "<=", end)],
        order_by=[("date", "ASC"), ("order", "ASC")],
        partition_key=planner_id,
    )
    return [clean_document(doc) for doc in docs]


def list_sections_by_type(planner_id: str, actor_id: str, section_type: str) -> List[dict]:
    if section_type not in SectionType.__members__:
        raise ValidationError("Invalid section type", details=[{"field": "type", "message": f"Unknown type '{section_type}'"}])

    require_view(planner_id, actor_id)
    docs = planners().query(
        "section",
        where=[("type", "=", section_type)],
        order_by=[("date", "DESC")],
        limit=SECTIONS_BY_TYPE_LIMIT,
        partition_key=planner_id,
    )
    return [clean_document(doc) for doc in docs]


def update_section(section_id: str, actor_id: str, patch: SectionUpdate) -> dict:
    section = resolve_section(section_id)
    planner_id = section["plannerId"]
    require_edit(planner_id, actor_id, not_found="Section not found")

    doc = conditional_update(
        planners(),
        lambda: _reload(section_id, planner_id),
        lambda current: _apply_update(current, patch, actor_id),
    )

    log_activity(planner_id, actor_id, "section_updated", f"Updated {doc['title']} section",
                 {"sectionId": section_id, "date": doc["date"]})
    return clean_document(doc)


def delete_section(section_id: str, actor_id: str) -> None:
    section = resolve_section(section_id)
    planner_id = section["plannerId"]
    require_edit(planner_id, actor_id, not_found="Section not found")

    planners().delete(section_id, planner_id)
    log_activity(planner_id, actor_id, "section_deleted", f"Deleted {section.get('title', section['type'])} section",
                 {"sectionId": section_id, "date": section["date"]})
    logger.info("Section '%s' deleted from planner '%s'", section_id, planner_id)


def toggle_collapse(section_id: str, actor_id: str) -> dict:
    section = resolve_section(section_id)
    planner_id = section["plannerId"]
    require_edit(planner_id, actor_id, not_found="Section not found")

    def flip(current):
        current["isCollapsed"] = not current.get("isCollapsed", False)
        current["updatedAt"] = utc_now()
        current["updatedBy"] = actor_id

    return clean_document(conditional_update(planners(), lambda: _reload(section_id, planner_id), flip))


def reorder_sections(planner_id: str, actor_id: str, orders: List[SectionOrder]) -> None:
    """
    Applies new `order` values in one transactional batch.
    Edit access is checked once, on the planner named in the request.
    """
    _check_batch_size(orders, "sectionOrders")
    _check_unique_ids([entry.id for entry in orders], "sectionOrders")
    require_edit(planner_id, actor_id)

    sections = _load_for_batch(planner_id, [entry.id for entry in orders])
    now = utc_now()
    operations = []
    for entry in orders:
        section = sections[entry.id]
        section["order"] = entry.order
        section["updatedAt"] = now
        section["updatedBy"] = actor_id
        operations.append(("replace", section))

    planners().execute_batch(planner_id, operations)
    log_activity(planner_id, actor_id, "sections_reordered", f"Reordered {len(orders)} sections")


def bulk_update_sections(planner_id: str, actor_id: str, items: List[BulkUpdateItem]) -> int:
    _check_batch_size(items, "sections")
    _check_unique_ids([item.id for item in items], "sections")
    require_edit(planner_id, actor_id)

    sections = _load_for_batch(planner_id, [item.id for item in items])
    operations = [("replace", _apply_update(sections[item.id], item.updates, actor_id)) for item in items]

    planners().execute_batch(planner_id, operations)
    log_activity(planner_id, actor_id, "sections_bulk_updated", f"Updated {len(items)} sections")
    return len(operations)


def duplicate_section(section_id: str, actor_id: str, target_date: Optional[str] = None) -> dict:
    """Copies a section within its planner, to `target_date` or the same day."""
    section = resolve_section(section_id)
    planner_id = section["plannerId"]
    require_edit(planner_id, actor_id, not_found="Section not found")

    copy = Section(
        plannerId=planner_id,
        date=parse_iso_date(target_date) if target_date else section["date"],
        type=section["type"],
        title=section.get("title", section["type"]),
        content=section.get("content", {}),
        order=section.get("order", 0),
        isCollapsed=section.get("isCollapsed", False),
        createdBy=actor_id,
    )
    doc = planners().create(copy.model_dump(mode="json", exclude_none=True))

    log_activity(planner_id, actor_id, "section_duplicated", f"Duplicated {copy.title} section",
                 {"sectionId": copy.id, "sourceSectionId": section_id, "date": copy.date})
    return clean_document(doc)
