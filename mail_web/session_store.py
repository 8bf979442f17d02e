"""
Client-held session: the mail server's session token kept in an HttpOnly cookie.
Claims are read without verifying the signature (display only); the mail server verifies on every call.
"""
import time
from dataclasses import dataclass

import jwt

from mail_web.config import COOKIE_MAX_AGE, COOKIE_SECURE, SESSION_COOKIE_NAME


@dataclass
class WebSession:
    token: str
    email: str
    display_name: str
    is_temporary: bool
    expires_at: float

    def expired(self) -> bool:
        return time.time() >= self.expires_at


def read_session(token: str | None) -> WebSession | None:
    """Session for a token, or None if it is missing, garbled or past exp."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or not claims.get("email"):
        return None
    session = WebSession(
        token=token,
        email=claims["email"],
        display_name=claims.get("displayName") or claims["email"],
        is_temporary=bool(claims.get("isTemporary")),
        expires_at=float(exp),
    )
    if session.expired():
        return None
    return session


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
