# app/auth.py

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import NamedTuple, Optional

import jwt
from azure.functions import HttpRequest

from app.config import ACCESS_TOKEN_EXPIRES_DAYS, JWT_ALGORITHM, JWT_SECRET, REFRESH_TOKEN_EXPIRES_DAYS
from app.database import users
from app.errors import UnauthorizedError

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class Actor(NamedTuple):
    """The authenticated caller of a request."""
    uid: str
    email: str
    display_name: Optional[str] = None


def _encode(user: dict, token_type: str, lifetime: timedelta) -> str:
    payload = {
        "uid": user["id"],
        "email": user["email"],
        "type": token_type,
        "ver": user.get("tokenVersion", 0),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def issue_tokens(user: dict) -> dict:
    return {
        "accessToken": _encode(user, ACCESS, timedelta(days=ACCESS_TOKEN_EXPIRES_DAYS)),
        "refreshToken": _encode(user, REFRESH, timedelta(days=REFRESH_TOKEN_EXPIRES_DAYS)),
        "expiresIn": ACCESS_TOKEN_EXPIRES_DAYS * 24 * 60 * 60,
    }


def decode_token(token: str, expected_type: str) -> dict:
    """
    Verifies signature, expiry and token type.
    Raises UnauthorizedError; a refresh token never passes as an access token.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token has expired")
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token: %s", str(e))
        raise UnauthorizedError("Invalid token")

    if not payload.get("uid") or payload.get("type") != expected_type:
        logger.warning("Token of type '%s' used where '%s' was expected", payload.get("type"), expected_type)
        raise UnauthorizedError("Invalid token")
    return payload


def load_token_user(payload: dict) -> dict:
    """The user a token was issued to, as long as the token has not been revoked."""
    user = users().get(payload["uid"], payload["uid"])
    if user is None:
        raise UnauthorizedError("Invalid token")
    if payload.get("ver", 0) != user.get("tokenVersion", 0):
        logger.warning("Revoked token presented for user '%s'", payload["uid"])
        raise UnauthorizedError("Token has been revoked")
    return user


def authenticate(req: HttpRequest) -> Actor:
    """Turns the 'Authorization: Bearer <token>' header into an Actor."""
    auth_header = req.headers.get("Authorization")
    if not auth_header:
        logger.warning("Authorization header missing")
        raise UnauthorizedError("No token provided")

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        logger.warning("Invalid Authorization header format")
        raise UnauthorizedError("No token provided")

    user = load_token_user(decode_token(parts[1], ACCESS))
    return Actor(uid=user["id"], email=user["email"], display_name=user.get("displayName"))


def token_required(func):
    """Authenticates the request and passes the caller on as `actor`."""
    @wraps(func)
    def wrapper(req: HttpRequest, *args, **kwargs):
        actor = authenticate(req)
        return func(req, *args, actor=actor, **kwargs)
    return wrapper
