# app/planner_routes.py

import logging
from typing import List, Optional

from app.activity_routes import log_activity
from app.config import DUPLICATE_WINDOW_DAYS, MAX_BATCH_OPERATIONS
from app.database import conditional_update, planners, users
from app.errors import NotFoundError
from app.models import Planner, PlannerCreate, PlannerUpdate, Section
from app.permissions import get_planner_doc, require_edit, require_owner, require_view
from app.utils import chunked, clean_document, parse_iso_date, trailing_window, utc_now

logger = logging.getLogger(__name__)

# Everything stored in a planner's partition besides the planner itself,
# in the order the cascade removes it.
CASCADE_DOC_TYPES = ("share", "section", "activity", "chat")


# -----------------------
# Default planner
# -----------------------
def _load_user(owner_id: str) -> dict:
    user = users().get(owner_id, owner_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _load_planner(planner_id: str) -> dict:
    planner = get_planner_doc(planner_id)
    if planner is None:
        raise NotFoundError("Planner not found")
    return planner


def _set_default_pointer(owner_id: str, planner_id: Optional[str], only_if_current: Optional[str] = None) -> None:
    """
    Moves the owner's defaultPlannerId with an etag-conditional write, so that of two
    concurrent callers exactly one wins. With `only_if_current`, the pointer is only
    changed while it still names that planner.
    """
    def point(user):
        current = user.get("defaultPlannerId")
        if only_if_current is not None and current != only_if_current:
            return False
        if current == planner_id:
            return False
        user["defaultPlannerId"] = planner_id
        user["updatedAt"] = utc_now()

    user = conditional_update(users(), lambda: _load_user(owner_id), point)
    logger.info("Default planner of user '%s' is '%s'", owner_id, user.get("defaultPlannerId"))
    _reconcile_default_flags(owner_id)


def _reconcile_default_flags(owner_id: str) -> None:
    """
    Aligns every owned planner's isDefault flag with the pointer on the user document.
    Each flag is written conditionally and compared against a fresh read of the pointer.
    """
    def align(planner):
        current = _load_user(owner_id).get("defaultPlannerId")
        should_be_default = planner["id"] == current
        if bool(planner.get("isDefault")) == should_be_default:
            return False
        planner["isDefault"] = should_be_default
        planner["updatedAt"] = utc_now()

    for planner in planners().query("planner", where=[("userId", "=", owner_id)]):
        try:
            conditional_update(planners(), lambda planner_id=planner["id"]: _load_planner(planner_id), align)
        except NotFoundError:
            # deleted meanwhile
            continue


def _refresh(planner_id: str) -> dict:
    return clean_document(_load_planner(planner_id))


# -----------------------
# Lifecycle
# -----------------------
def create_planner(owner_id: str, attrs: PlannerCreate) -> dict:
    """
    Creates a planner owned by `owner_id`.
    With isDefault=True the new planner becomes the owner's only default.
    """
    logger.info("Creating planner '%s' for user '%s'", attrs.title, owner_id)

    planner = Planner(
        userId=owner_id,
        title=attrs.title,
        color=attrs.color,
        icon=attrs.icon,
        description=attrs.description,
        isDefault=False,
    )
    planners().create(planner.to_document())

    if attrs.isDefault:
        _set_default_pointer(owner_id, planner.id)

    log_activity(planner.id, owner_id, "planner_created", f"Created planner \"{planner.title}\"")
    return _refresh(planner.id)


def get_planner(planner_id: str, actor_id: str) -> dict:
    return clean_document(require_view(planner_id, actor_id))


def update_planner(planner_id: str, actor_id: str, patch: PlannerUpdate) -> dict:
    """
    Edit access required. isDefault=True makes the planner the owner's default;
    isDefault=False on the current default leaves the owner without one.
    """
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    is_default = changes.pop("isDefault", None)

    def apply(planner):
        planner.update(changes)
        planner["updatedAt"] = utc_now()

    if changes:
        planner = conditional_update(planners(), lambda: require_edit(planner_id, actor_id), apply)
    else:
        planner = require_edit(planner_id, actor_id)

    owner_id = planner["userId"]
    if is_default is True:
        _set_default_pointer(owner_id, planner_id)
    elif is_default is False:
        _set_default_pointer(owner_id, None, only_if_current=planner_id)

    log_activity(planner_id, actor_id, "planner_updated", "Updated planner",
                 {"fields": sorted(patch.model_dump(exclude_unset=True).keys())})
    logger.info("Planner '%s' updated by user '%s'", planner_id, actor_id)
    return _refresh(planner_id)


def delete_planner(planner_id: str, actor_id: str) -> None:
    """
    Owner-only. Removes the planner together with its shares, sections, activity
    and chat history. Each batch is atomic; the first one removes the planner itself
    along with its shares, so anything left behind by a failed later batch is
    already unreachable.
    """
    planner = require_owner(planner_id, actor_id, "Only the planner owner can delete it")
    store = planners()

    # 1) Collect everything in the partition
    ids = [planner_id]
    for doc_type in CASCADE_DOC_TYPES:
        ids.extend(doc["id"] for doc in store.query(doc_type, partition_key=planner_id))

    # 2) Delete in transactional batches
    for batch in chunked(ids, MAX_BATCH_OPERATIONS):
        store.execute_batch(planner_id, [("delete", doc_id) for doc_id in batch])

    # 3) Drop the default pointer if it named this planner
    _set_default_pointer(planner["userId"], None, only_if_current=planner_id)
    logger.info("Planner '%s' deleted with %s dependent documents", planner_id, len(ids) - 1)


def duplicate_planner(planner_id: str, actor_id: str, new_title: Optional[str] = None) -> dict:
    """
    Copies a planner the actor can view into a new planner the actor owns,
    together with the sections of the last seven days (today included).
    """
    original = require_view(planner_id, actor_id)

    copy = Planner(
        userId=actor_id,
        title=new_title or f"{original['title']} (Copy)",
        color=original.get("color", "blue"),
        icon=original.get("icon", "calendar"),
        description=original.get("description", ""),
        isDefault=False,
    )
    planners().create(copy.to_document())

    start, end = trailing_window(DUPLICATE_WINDOW_DAYS)
    sections = planners().query(
        "section",
        where=[("date", ">=", start), ("date", "<=", end)],
        partition_key=planner_id,
    )

    copies = []
    for section in sections:
        duplicate = Section(
            plannerId=copy.id,
            date=section["date"],
            type=section["type"],
            title=section.get("title", section["type"]),
            content=section.get("content", {}),
            order=section.get("order", 0),
            isCollapsed=False,
            createdBy=actor_id,
        )
        copies.append(("create", duplicate.model_dump(mode="json", exclude_none=True)))

    for batch in chunked(copies, MAX_BATCH_OPERATIONS):
        planners().execute_batch(copy.id, batch)

    log_activity(copy.id, actor_id, "planner_duplicated", f"Duplicated from \"{original['title']}\"",
                 {"sourcePlannerId": planner_id, "sectionsCopied": len(copies)})
    logger.info("Planner '%s' duplicated into '%s' with %s sections", planner_id, copy.id, len(copies))
    return _refresh(copy.id)


def set_default_planner(planner_id: str, actor_id: str) -> dict:
    require_owner(planner_id, actor_id, "Only the planner owner can make it the default")
    _set_default_pointer(actor_id, planner_id)
    return _refresh(planner_id)


def archive_planner(planner_id: str, actor_id: str) -> dict:
    def archive(planner):
        now = utc_now()
        planner["isArchived"] = True
        planner["archivedAt"] = now
        planner["updatedAt"] = now

    planner = conditional_update(
        planners(),
        lambda: require_owner(planner_id, actor_id, "Only the planner owner can archive it"),
        archive,
    )

    log_activity(planner_id, actor_id, "planner_archived", "Archived planner")
    logger.info("Planner '%s' archived", planner_id)
    return clean_document(planner)


def restore_planner(planner_id: str, actor_id: str) -> dict:
    def restore(planner):
        planner["isArchived"] = False
        planner["archivedAt"] = None
        planner["updatedAt"] = utc_now()

    planner = conditional_update(
        planners(),
        lambda: require_owner(planner_id, actor_id, "Only the planner owner can restore it"),
        restore,
    )

    log_activity(planner_id, actor_id, "planner_restored", "Restored planner")
    logger.info("Planner '%s' restored", planner_id)
    return clean_document(planner)


def list_planners(user_id: str, include_archived: bool = False) -> List[dict]:
    """The user's own planners, newest first."""
    where = [("userId", "=", user_id)]
    if not include_archived:
        where.append(("isArchived", "=", False))
    docs = planners().query("planner", where=where, order_by=[("createdAt", "DESC")])
    return [clean_document(doc) for doc in docs]


def list_planners_for_date(user_id: str, date: str) -> List[dict]:
    """The user's active planners that have at least one section on `date`."""
    date = parse_iso_date(date)
    result = []
    for planner in list_planners(user_id):
        if planners().query("section", where=[("date", "=", date)], limit=1, partition_key=planner["id"]):
            result.append(planner)
    return result
