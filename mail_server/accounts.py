"""
Token store: find, upsert and create Account rows.
Exactly one Account per identity key (email); logins overwrite tokens in place.
"""
import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from mail_server.config import TEMPORARY_EMAIL_DOMAIN
from mail_server.models import Account

logger = logging.getLogger(__name__)


def _expiry_from(expires_in: int | None) -> datetime | None:
    if not expires_in:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


def get_account_by_email(db: Session, email: str) -> Account | None:
    return db.query(Account).filter(Account.email == email).first()


def upsert_account(
    db: Session,
    *,
    email: str,
    display_name: str | None,
    access_token: str,
    refresh_token: str | None,
    expires_in: int | None,
) -> Account:
    """
    Create or refresh the Account for this identity.
    Existing rows keep their display name when the profile has none.
    """
    now = datetime.now(timezone.utc)
    account = get_account_by_email(db, email)
    if account is not None:
        account.access_token = access_token
        account.refresh_token = refresh_token
        account.expires_at = _expiry_from(expires_in)
        account.display_name = display_name or account.display_name
        account.is_temporary = False
        account.last_login_at = now
        logger.info("Updated account %s", email)
    else:
        account = Account(
            email=email,
            display_name=display_name or "User",
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=_expiry_from(expires_in),
            is_temporary=False,
            last_login_at=now,
        )
        db.add(account)
        logger.info("Created account %s", email)
    db.commit()
    db.refresh(account)
    return account


def create_temporary_account(
    db: Session,
    *,
    access_token: str,
    refresh_token: str | None,
    expires_in: int | None,
) -> Account:
    """Account with a placeholder identity, used when the profile could not be fetched."""
    email = f"user_{int(time.time() * 1000)}@{TEMPORARY_EMAIL_DOMAIN}"
    account = Account(
        email=email,
        display_name="User",
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=_expiry_from(expires_in),
        is_temporary=True,
        last_login_at=datetime.now(timezone.utc),
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    logger.warning("Created temporary account %s (profile fetch failed)", email)
    return account
