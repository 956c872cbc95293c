# app/sharing_routes.py

import logging
from typing import List

from app import workflows
from app.activity_routes import log_activity
from app.database import planners, users
from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models import PlannerShare
from app.notifications import notify_quietly, send_share_invitation_email
from app.permissions import find_share, get_planner_doc, require_owner
from app.utils import clean_document, utc_now

logger = logging.getLogger(__name__)


def _get_share(share_id: str, not_found: str = "Share not found") -> dict:
    shares = planners().query("share", where=[("id", "=", share_id)], limit=1)
    if not shares:
        raise NotFoundError(not_found)
    return shares[0]


def _find_user_by_email(email: str) -> dict:
    found = users().query("user", where=[("email", "=", email.lower())], limit=1)
    if not found:
        raise NotFoundError("User not found")
    return found[0]


def _planner_summary(planner: dict) -> dict:
    return {
        "id": planner["id"],
        "title": planner.get("title"),
        "color": planner.get("color"),
        "icon": planner.get("icon"),
        "userId": planner.get("userId"),
    }


def share_planner(planner_id: str, owner_id: str, email: str, permission: str) -> dict:
    """
    share_planner:
    Invites the user registered under `email` to the planner. Only the owner may share.
    The share starts out pending (isAccepted=False) and grants nothing until accepted.
    Notifications are best-effort: a failed webhook or email leaves the share in place.
    """
    logger.info("User '%s' sharing planner '%s' with '%s' (%s)", owner_id, planner_id, email, permission)

    # 1) Owner check
    planner = require_owner(planner_id, owner_id, "Only the planner owner can share it")

    # 2) Resolve the recipient
    recipient = _find_user_by_email(email)
    if recipient["id"] == owner_id:
        raise ValidationError(
            "You cannot share a planner with yourself",
            details=[{"field": "email", "message": "Recipient must be another user"}],
        )

    # 3) One share per (planner, user), accepted or not
    if find_share(planner_id, recipient["id"]) is not None:
        raise ConflictError("Planner already shared with this user")

    share = PlannerShare(
        plannerId=planner_id,
        ownerId=owner_id,
        sharedWithUserId=recipient["id"],
        sharedWithEmail=recipient["email"],
        permission=permission,
    )
    doc = planners().create(share.model_dump(mode="json", exclude_none=True))

    log_activity(planner_id, owner_id, "planner_shared", f"Shared planner with {recipient['email']} ({permission})",
                 {"shareId": share.id, "sharedWithUserId": recipient["id"]})

    # 4) Tell the recipient
    owner = users().get(owner_id, owner_id) or {}
    notify_quietly("share webhook", workflows.send_share_notification,
                   share.id, planner["title"], recipient["email"], permission)
    notify_quietly("share email", send_share_invitation_email,
                   recipient["email"], recipient.get("displayName", ""),
                   owner.get("displayName", "Someone"), planner["title"], permission)

    return clean_document(doc)


def list_planner_shares(planner_id: str, owner_id: str) -> List[dict]:
    require_owner(planner_id, owner_id, "Only the planner owner can see its shares")
    shares = planners().query("share", order_by=[("createdAt", "DESC")], partition_key=planner_id)
    return [clean_document(share) for share in shares]


def update_share_permission(share_id: str, actor_id: str, permission: str) -> dict:
    share = _get_share(share_id)
    if share.get("ownerId") != actor_id:
        logger.warning("User '%s' tried to change permission on share '%s'", actor_id, share_id)
        raise ForbiddenError("Only the owner can update permissions")

    share["permission"] = permission
    share["updatedAt"] = utc_now()
    doc = planners().replace(share)

    log_activity(share["plannerId"], actor_id, "permission_updated", f"Updated permission to {permission}",
                 {"shareId": share_id, "sharedWithUserId": share["sharedWithUserId"]})
    return clean_document(doc)


def remove_share(share_id: str, actor_id: str) -> None:
    share = _get_share(share_id)
    if share.get("ownerId") != actor_id:
        logger.warning("User '%s' tried to remove share '%s'", actor_id, share_id)
        raise ForbiddenError("Only the owner can remove shares")

    planners().delete(share_id, share["plannerId"])
    log_activity(share["plannerId"], actor_id, "share_removed", f"Removed share with {share['sharedWithEmail']}",
                 {"sharedWithUserId": share["sharedWithUserId"]})
    logger.info("Share '%s' removed from planner '%s'", share_id, share["plannerId"])


def _require_recipient(share_id: str, actor_id: str) -> dict:
    share = _get_share(share_id, "Invitation not found")
    if share.get("sharedWithUserId") != actor_id:
        logger.warning("User '%s' is not the recipient of invitation '%s'", actor_id, share_id)
        raise ForbiddenError("Access denied")
    return share


def accept_invitation(share_id: str, actor_id: str) -> dict:
    share = _require_recipient(share_id, actor_id)
    if share.get("isAccepted"):
        return clean_document(share)

    now = utc_now()
    share["isAccepted"] = True
    share["acceptedAt"] = now
    share["updatedAt"] = now
    doc = planners().replace(share)

    log_activity(share["plannerId"], actor_id, "invitation_accepted", "Accepted planner invitation",
                 {"shareId": share_id})
    logger.info("User '%s' accepted invitation '%s'", actor_id, share_id)
    return clean_document(doc)


def reject_invitation(share_id: str, actor_id: str) -> None:
    share = _require_recipient(share_id, actor_id)
    planners().delete(share_id, share["plannerId"])
    logger.info("User '%s' rejected invitation '%s'", actor_id, share_id)


def list_pending_invitations(user_id: str) -> List[dict]:
    """Unaccepted shares addressed to the user, newest first, each with a planner summary."""
    shares = planners().query(
        "share",
        where=[("sharedWithUserId", "=", user_id), ("isAccepted", "=", False)],
        order_by=[("createdAt", "DESC")],
    )
    invitations = []
    for share in shares:
        planner = get_planner_doc(share["plannerId"])
        if planner is None:
            continue
        invitation = clean_document(share)
        invitation["planner"] = _planner_summary(planner)
        invitations.append(invitation)
    return invitations


def list_shared_with_me(user_id: str) -> List[dict]:
    shares = planners().query(
        "share",
        where=[("sharedWithUserId", "=", user_id), ("isAccepted", "=", True)],
    )
    result = []
    for share in shares:
        planner = get_planner_doc(share["plannerId"])
        # shares of deleted planners are skipped
        if planner is None:
            continue
        entry = clean_document(share)
        entry["planner"] = clean_document(planner)
        result.append(entry)
    return result


def leave_planner(planner_id: str, user_id: str) -> None:
    share = find_share(planner_id, user_id)
    if share is None:
        raise NotFoundError("You are not a member of this planner")

    planners().delete(share["id"], planner_id)
    log_activity(planner_id, user_id, "left_planner", "Left shared planner")
    logger.info("User '%s' left planner '%s'", user_id, planner_id)
