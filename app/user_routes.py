# app/user_routes.py

import logging

import bcrypt
from azure.cosmos.exceptions import CosmosResourceExistsError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from app import storage
from app.auth import REFRESH, decode_token, issue_tokens, load_token_user
from app.config import GOOGLE_CLIENT_ID
from app.database import planners, records, users
from app.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from app.models import Preferences, User, UpdateProfileRequest
from app.notifications import notify_quietly, send_password_changed_email, send_welcome_email
from app.planner_routes import delete_planner
from app.utils import clean_document, utc_now

logger = logging.getLogger(__name__)

PRIVATE_FIELDS = ("password", "tokenVersion")


def public_user(user_doc: dict) -> dict:
    """A user document without the password hash and token bookkeeping."""
    doc = clean_document(user_doc)
    for field in PRIVATE_FIELDS:
        doc.pop(field, None)
    doc["uid"] = doc["id"]
    return doc


def _find_by_email(email: str):
    found = users().query("user", where=[("email", "=", email.strip().lower())], limit=1)
    return found[0] if found else None


def _get_user(user_id: str) -> dict:
    user = users().get(user_id, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _session(user_doc: dict) -> dict:
    return {"user": public_user(user_doc), **issue_tokens(user_doc)}


def register_user(email: str, password: str, display_name: str) -> dict:
    """
    Registers a new email/password user and sends a welcome email.
    Returns the public user together with an access and a refresh token.
    """
    logger.info("Received request to register user: %s", email)

    if _find_by_email(email) is not None:
        raise ConflictError("Email is already registered")

    user = User(
        email=email.strip().lower(),
        displayName=display_name.strip(),
        authProvider="email",
        password=_hash_password(password),
    )
    try:
        doc = users().create(user.model_dump(mode="json"))
    except CosmosResourceExistsError:
        raise ConflictError("Email is already registered")

    notify_quietly("welcome email", send_welcome_email, user.email, user.displayName)
    logger.info("User '%s' registered", user.id)
    return _session(doc)


def login_user(email: str, password: str) -> dict:
    logger.info("Received login request for: %s", email)

    user_doc = _find_by_email(email)
    if user_doc is None or not user_doc.get("password"):
        logger.warning("Login failed for '%s'", email)
        raise UnauthorizedError("Invalid email or password")

    if not bcrypt.checkpw(password.encode("utf-8"), user_doc["password"].encode("utf-8")):
        logger.warning("Invalid credentials for '%s'", email)
        raise UnauthorizedError("Invalid email or password")

    user_doc["lastLogin"] = utc_now()
    user_doc = users().replace(user_doc)
    logger.info("User '%s' logged in successfully", user_doc["id"])
    return _session(user_doc)


def google_login(id_token_str: str) -> dict:
    """
    Verifies a Google ID token. Signs the user in, registering them on first use.
    """
    try:
        idinfo = id_token.verify_oauth2_token(id_token_str, google_requests.Request(), GOOGLE_CLIENT_ID)
    except ValueError as e:
        logger.warning("Invalid Google ID token: %s", str(e))
        raise UnauthorizedError("Invalid Google ID token")

    google_id = idinfo.get("sub")
    email = (idinfo.get("email") or "").lower()
    if not email or not google_id:
        raise UnauthorizedError("Invalid Google token: missing email or sub")

    # 1) Existing account, by Google id first and then by email
    found = users().query("user", where=[("googleId", "=", google_id)], limit=1)
    user_doc = found[0] if found else _find_by_email(email)

    if user_doc is not None:
        user_doc["googleId"] = google_id
        user_doc["lastLogin"] = utc_now()
        user_doc = users().replace(user_doc)
        logger.info("User '%s' logged in with Google", user_doc["id"])
        return _session(user_doc)

    # 2) First login: register
    user = User(
        email=email,
        displayName=idinfo.get("name") or email.split("@")[0],
        photoURL=idinfo.get("picture", ""),
        authProvider="google",
        googleId=google_id,
    )
    user_doc = users().create(user.model_dump(mode="json"))
    notify_quietly("welcome email", send_welcome_email, user.email, user.displayName)
    logger.info("User '%s' registered via Google", user.id)
    return _session(user_doc)


def refresh_tokens(refresh_token: str) -> dict:
    """Exchanges a valid, unrevoked refresh token for a new token pair."""
    user_doc = load_token_user(decode_token(refresh_token, REFRESH))
    return issue_tokens(user_doc)


def get_current_user(user_id: str) -> dict:
    return public_user(_get_user(user_id))


def update_profile(user_id: str, updates: UpdateProfileRequest) -> dict:
    """
    Updates display name and photo; preferences are merged into the stored ones.
    """
    user_doc = _get_user(user_id)
    changes = updates.model_dump(exclude_unset=True, exclude_none=True)

    preferences = changes.pop("preferences", None)
    if preferences:
        merged = dict(user_doc.get("preferences") or {})
        merged.update(preferences)
        user_doc["preferences"] = Preferences.model_validate(merged).model_dump(mode="json")

    user_doc.update(changes)
    user_doc["updatedAt"] = utc_now()
    user_doc = users().replace(user_doc)
    logger.info("Profile of user '%s' updated", user_id)
    return public_user(user_doc)


def change_password(user_id: str, current_password: str, new_password: str) -> dict:
    """
    Email accounts only. Revokes every outstanding token and returns a fresh pair.
    """
    user_doc = _get_user(user_id)
    if user_doc.get("authProvider") != "email" or not user_doc.get("password"):
        raise ValidationError("Password change is only available for email accounts")

    if not bcrypt.checkpw(current_password.encode("utf-8"), user_doc["password"].encode("utf-8")):
        logger.warning("Wrong current password for user '%s'", user_id)
        raise UnauthorizedError("Current password is incorrect")

    user_doc["password"] = _hash_password(new_password)
    user_doc["tokenVersion"] = user_doc.get("tokenVersion", 0) + 1
    user_doc["updatedAt"] = utc_now()
    user_doc = users().replace(user_doc)

    notify_quietly("password changed email", send_password_changed_email,
                   user_doc["email"], user_doc.get("displayName", ""))
    logger.info("Password changed for user '%s'", user_id)
    return issue_tokens(user_doc)


def logout(user_id: str) -> None:
    """Revokes every token issued so far."""
    user_doc = _get_user(user_id)
    user_doc["tokenVersion"] = user_doc.get("tokenVersion", 0) + 1
    users().replace(user_doc)
    logger.info("User '%s' logged out", user_id)


def delete_account(user_id: str) -> None:
    """
    Deletes the user with everything they own: their planners (with all planner
    documents), the shares they received, their export and handwriting records,
    and finally the user document.
    """
    _get_user(user_id)

    # 1) Owned planners
    owned = planners().query("planner", where=[("userId", "=", user_id)])
    for planner in owned:
        delete_planner(planner["id"], user_id)

    # 2) Shares received
    received = planners().query("share", where=[("sharedWithUserId", "=", user_id)])
    for share in received:
        planners().delete(share["id"], share["plannerId"])

    # 3) Exports and drawings
    for doc_type in ("export", "handwriting"):
        for record in records().query(doc_type, partition_key=user_id):
            if record.get("imagePath"):
                notify_quietly("drawing cleanup", storage.delete_file, record["imagePath"])
            records().delete(record["id"], user_id)

    # 4) The user
    users().delete(user_id, user_id)
    logger.info("Account '%s' deleted with %s planners and %s received shares", user_id, len(owned), len(received))
