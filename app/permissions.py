# app/permissions.py

import logging
from typing import Optional

from app.database import planners
from app.errors import ForbiddenError, NotFoundError
from app.models import Permission

logger = logging.getLogger(__name__)

OWNER = "owner"


def get_planner_doc(planner_id: str) -> Optional[dict]:
    """Reads a planner document; planners live in their own partition."""
    if not planner_id:
        return None
    doc = planners().get(planner_id, planner_id)
    if doc is None or doc.get("docType") != "planner":
        return None
    return doc


def find_share(planner_id: str, user_id: str, accepted_only: bool = False) -> Optional[dict]:
    """Returns the share for (planner_id, user_id), if there is one."""
    where = [("sharedWithUserId", "=", user_id)]
    if accepted_only:
        where.append(("isAccepted", "=", True))
    shares = planners().query("share", where=where, limit=1, partition_key=planner_id)
    return shares[0] if shares else None


def access_level(planner: dict, actor_id: str) -> Optional[str]:
    """
    Resolves what `actor_id` may do with `planner`:
    'owner', 'edit', 'view', or None when the actor has no access.
    Only accepted shares count.
    """
    if planner.get("userId") == actor_id:
        return OWNER
    share = find_share(planner["id"], actor_id, accepted_only=True)
    if share is None:
        return None
    if share.get("permission") == Permission.edit.value:
        return Permission.edit.value
    return Permission.view.value


def check_permission(planner_id: str, actor_id: str, required: str) -> bool:
    """
    True when `actor_id` holds `required` ('view' or 'edit') on the planner.
    The owner holds both; an accepted share grants view, and edit only with permission 'edit'.
    Resolved from the store on every call.
    """
    planner = get_planner_doc(planner_id)
    if planner is None:
        return False
    level = access_level(planner, actor_id)
    if level is None:
        return False
    if required == Permission.view.value:
        return True
    return level in (OWNER, Permission.edit.value)


def require_view(planner_id: str, actor_id: str, not_found: str = "Planner not found") -> dict:
    """Returns the planner, or raises NotFoundError so existence is never revealed."""
    planner = get_planner_doc(planner_id)
    if planner is None or access_level(planner, actor_id) is None:
        logger.warning("User '%s' denied view access to planner '%s'", actor_id, planner_id)
        raise NotFoundError(not_found)
    return planner


def require_edit(planner_id: str, actor_id: str, not_found: str = "Planner not found") -> dict:
    planner = get_planner_doc(planner_id)
    level = access_level(planner, actor_id) if planner else None
    if level is None:
        logger.warning("User '%s' denied access to planner '%s'", actor_id, planner_id)
        raise NotFoundError(not_found)
    if level == Permission.view.value:
        logger.warning("User '%s' has view-only access to planner '%s'", actor_id, planner_id)
        raise ForbiddenError("You do not have permission to edit this planner")
    return planner


def require_owner(planner_id: str, actor_id: str, forbidden_message: Optional[str] = None) -> dict:
    """
    Ownership guard: NotFoundError when the actor cannot see the planner at all,
    ForbiddenError when they can see it but do not own it.
    """
    planner = require_view(planner_id, actor_id)
    if planner.get("userId") != actor_id:
        logger.warning("User '%s' is not the owner of planner '%s'", actor_id, planner_id)
        raise ForbiddenError(forbidden_message or "Only the planner owner can perform this action")
    return planner


def resolve_section(section_id: str) -> dict:
    """Finds a section by id across planners."""
    sections = planners().query("section", where=[("id", "=", section_id)], limit=1)
    if not sections:
        raise NotFoundError("Section not found")
    return sections[0]
