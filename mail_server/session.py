"""
Session tokens: HS256 JWTs issued after login and verified on every /api call.
Stateless; validity is signature + exp. The dependency resolves the token to its Account.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mail_server.accounts import get_account_by_email
from mail_server.config import SESSION_ALGORITHM, SESSION_SECRET, SESSION_TOKEN_DAYS
from mail_server.database import get_db
from mail_server.models import Account

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("userId", "email", "exp")


class SessionError(Exception):
    """Session token is missing, malformed, expired or signed with another key."""


def _secret(secret: str | None) -> str:
    value = secret if secret is not None else SESSION_SECRET
    if not value:
        raise RuntimeError("SESSION_SECRET is not configured")
    return value


def issue_session_token(account: Account, *, secret: str | None = None, now: datetime | None = None) -> str:
    """Sign {userId, email, displayName, isTemporary} valid for SESSION_TOKEN_DAYS."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "userId": account.id,
        "email": account.email,
        "displayName": account.display_name,
        "isTemporary": bool(account.is_temporary),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=SESSION_TOKEN_DAYS)).timestamp()),
    }
    token = jwt.encode(payload, _secret(secret), algorithm=SESSION_ALGORITHM)
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def verify_session_token(token: str, *, secret: str | None = None) -> dict:
    """Return claims or raise SessionError."""
    try:
        claims = jwt.decode(
            token,
            _secret(secret),
            algorithms=[SESSION_ALGORITHM],
            options={"require": list(REQUIRED_CLAIMS), "verify_exp": True},
        )
    except jwt.ExpiredSignatureError as e:
        raise SessionError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise SessionError("Invalid token") from e
    if not isinstance(claims.get("email"), str) or not claims["email"]:
        raise SessionError("Invalid token subject")
    return claims


def _unauthorized(error: str, description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "error_description": description},
        headers={"WWW-Authenticate": "Bearer"},
    )


security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    if credentials is None:
        raise _unauthorized("invalid_request", "No token provided")
    if credentials.scheme.lower() != "bearer":
        raise _unauthorized("invalid_request", "Bearer scheme required")
    return credentials.credentials


def get_current_account(
    token: Annotated[str, Depends(get_bearer_token)],
    db: Annotated[Session, Depends(get_db)],
) -> Account:
    """Dependency: valid session token -> the Account it was issued for."""
    try:
        claims = verify_session_token(token)
    except SessionError as e:
        logger.info("Rejected session token: %s", e)
        raise _unauthorized("invalid_token", str(e))

    account = get_account_by_email(db, claims["email"])
    if account is None or account.id != claims["userId"]:
        logger.info("Session token for unknown account %s", claims["email"])
        raise _unauthorized("invalid_token", "User not found")
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]
