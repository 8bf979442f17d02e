"""
OAuth login against the Microsoft identity platform.
GET /auth/login redirects to the provider; GET /auth/callback exchanges the code, fetches the
profile (bounded retry), upserts the Account and redirects to the front end with a session token.
"""
import logging
import time
from urllib.parse import quote, urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from mail_server import graph
from mail_server.accounts import create_temporary_account, upsert_account
from mail_server.config import (
    ALLOW_TEMPORARY_ACCOUNTS,
    AUTHORIZE_URL,
    CLIENT_ID,
    CLIENT_SECRET,
    FRONTEND_URL,
    LOGIN_SCOPES,
    MAIL_SCOPES,
    OAUTH_STATE,
    PROFILE_FETCH_RETRIES,
    PROFILE_RETRY_DELAY_SECONDS,
    REDIRECT_URI,
    TOKEN_TIMEOUT_SECONDS,
    TOKEN_URL,
)
from mail_server.database import get_db
from mail_server.graph import GraphError
from mail_server.models import Account
from mail_server.session import issue_session_token

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth")


class LoginError(Exception):
    """Login cannot continue; the message is shown on the front-end error page."""


def build_authorize_url() -> str:
    params = {
        "client_id": CLIENT_ID,
        "response_type": "code",
        "redirect_uri": REDIRECT_URI,
        "scope": LOGIN_SCOPES,
        "response_mode": "query",
        "prompt": "consent",
        "state": OAUTH_STATE,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def success_redirect(token: str) -> RedirectResponse:
    return RedirectResponse(url=f"{FRONTEND_URL}/auth/success?token={quote(token, safe='')}", status_code=302)


def error_redirect(message: str) -> RedirectResponse:
    return RedirectResponse(url=f"{FRONTEND_URL}/auth/error?message={quote(message, safe='')}", status_code=302)


def exchange_code(code: str) -> dict:
    """POST the authorization code to the token endpoint. No retry."""
    try:
        r = httpx.post(
            TOKEN_URL,
            data={
                "client_id": CLIENT_ID,
                "client_secret": CLIENT_SECRET,
                "code": code,
                "redirect_uri": REDIRECT_URI,
                "grant_type": "authorization_code",
                "scope": MAIL_SCOPES,
            },
            headers={"Accept": "application/json"},
            timeout=TOKEN_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as e:
        logger.error("Token exchange failed: %s", e)
        raise LoginError(f"Token exchange failed: {e}") from e

    if r.status_code != 200:
        err = r.json() if r.headers.get("content-type", "").startswith("application/json") else {}
        err_desc = err.get("error_description") or err.get("error") or r.text or "unknown error"
        logger.error("Token exchange rejected (%s): %s", r.status_code, err_desc)
        raise LoginError(f"Token exchange failed: {err_desc}")

    data = r.json()
    if not data.get("access_token"):
        raise LoginError("No access token received from Microsoft")
    logger.info("Tokens received; scopes granted: %s", data.get("scope", ""))
    return data


def fetch_profile_with_retry(
    access_token: str,
    retries: int = PROFILE_FETCH_RETRIES,
    delay_seconds: float = PROFILE_RETRY_DELAY_SECONDS,
) -> dict | None:
    """
    GET /me up to retries + 1 times, sleeping delay_seconds * attempt between attempts.
    Returns None when every attempt failed.
    """
    attempt = 0
    while True:
        try:
            logger.info("Fetching user profile (attempt %d)", attempt + 1)
            return graph.get_profile(access_token)
        except GraphError as e:
            attempt += 1
            if attempt > retries:
                logger.error("All %d profile fetch attempts failed: %s", attempt, e.details)
                return None
            logger.warning("Profile fetch failed, retrying (%d/%d)", attempt, retries)
            time.sleep(delay_seconds * attempt)


def complete_login(db: Session, code: str) -> Account:
    """Exchange the code and persist the Account; raises LoginError on any failure."""
    tokens = exchange_code(code)
    access_token = tokens["access_token"]
    refresh_token = tokens.get("refresh_token")
    expires_in = tokens.get("expires_in")

    profile = fetch_profile_with_retry(access_token)
    if profile is None:
        if not ALLOW_TEMPORARY_ACCOUNTS:
            raise LoginError("Could not fetch user profile from Microsoft")
        return create_temporary_account(
            db, access_token=access_token, refresh_token=refresh_token, expires_in=expires_in
        )

    email = profile.get("mail") or profile.get("userPrincipalName")
    if not email:
        raise LoginError("Could not determine user email from Microsoft Graph response")
    logger.info("Profile received for %s", email)
    return upsert_account(
        db,
        email=email,
        display_name=profile.get("displayName"),
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
    )


@router.get("/login")
def login():
    """Redirect to the Microsoft consent screen."""
    url = build_authorize_url()
    logger.info("Redirecting to provider authorization URL")
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback")
def callback(
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    state: str | None = None,
    db: Session = Depends(get_db),
):
    """Handle the provider redirect. Always answers with a redirect to the front end."""
    logger.info("OAuth callback received: code=%s error=%s state=%s", "yes" if code else "no", error, state)

    if error:
        logger.error("OAuth provider error: %s %s", error, error_description)
        return error_redirect(error_description or f"OAuth error: {error}")
    if not code:
        return error_redirect("No authorization code received from Microsoft")

    try:
        account = complete_login(db, code)
        token = issue_session_token(account)
    except LoginError as e:
        return error_redirect(str(e))
    except Exception as e:
        logger.exception("Auth callback error")
        db.rollback()
        return error_redirect(str(e) or "Authentication failed due to unknown error")

    logger.info("Authentication completed for %s", account.email)
    return success_redirect(token)


@router.get("/test-graph")
def test_graph(access_token: str | None = None):
    """Check a raw provider access token against /me and /me/mailFolders."""
    if not access_token:
        raise HTTPException(status_code=400, detail={"error": "Access token required"})

    try:
        profile = graph.get_profile(access_token)
    except GraphError as e:
        raise HTTPException(
            status_code=500,
            detail={"success": False, "error": e.details, "details": "Microsoft Graph API access test failed"},
        )

    mail_test = {"success": False, "error": None}
    try:
        graph.list_mail_folders(access_token)
        mail_test["success"] = True
    except GraphError as e:
        mail_test["error"] = e.details

    return {
        "success": True,
        "tests": {
            "profile": {
                "success": True,
                "user": profile.get("displayName"),
                "email": profile.get("mail") or profile.get("userPrincipalName"),
            },
            "mail": mail_test,
        },
        "tokenInfo": {"length": len(access_token), "first10": access_token[:10] + "..."},
    }
