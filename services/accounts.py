from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from typing import Iterable, Optional

from core.errors import NotAuthenticatedError, UserAlreadyExistsError, ValidationError
from core.records import User, UserRole, as_utc, new_id, to_iso, utc_now
from core.session import SessionContext
from services.reward_scheduler import check_and_run_weekly_rewards
from services.store import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)

SIGNUP_CREDITS = 50
REFERRAL_CODE_LENGTH = 6
_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


def _referral_code() -> str:
    return "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def register(
    store: KeyValueStore,
    name: str,
    email: str,
    role,
    *,
    interests: Optional[Iterable[str]] = None,
    organization: Optional[str] = None,
    referred_by: Optional[str] = None,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> User:
    name = (name or "").strip()
    email = _normalize_email(email)
    if not name or not email:
        raise ValidationError("Name and email are required")
    try:
        role = UserRole(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}")

    now = as_utc(now or utc_now())
    with store.locked():
        users = store.get_list(STORAGE_KEYS["USERS"])
        if any(_normalize_email(u.get("email")) == email for u in users):
            raise UserAlreadyExistsError()

        user = User(
            id=new_id(),
            name=name,
            email=email,
            role=role,
            credits=SIGNUP_CREDITS,
            last_active_date=to_iso(now),
            referral_code=_referral_code(),
            referred_by=referred_by or None,
            interests=[i for i in (interests or []) if i],
            organization=organization or None,
        )
        users.append(user.to_dict())
        store.set_list(STORAGE_KEYS["USERS"], users)

    logger.info("Registered %s user %s", role.value, user.id)
    if session is not None:
        session.user = user
    return user


def login(
    store: KeyValueStore,
    email: str,
    session: Optional[SessionContext] = None,
    now: Optional[datetime] = None,
) -> Optional[User]:
    """Look the user up by email after giving the weekly rewards a chance to run."""
    check_and_run_weekly_rewards(store, now=now)
    email = _normalize_email(email)
    for row in store.get_list(STORAGE_KEYS["USERS"]):
        if _normalize_email(row.get("email")) == email:
            user = User.from_dict(row)
            if session is not None:
                session.user = user
            return user
    return None


def logout(session: SessionContext) -> None:
    session.user = None


def update_profile(
    store: KeyValueStore,
    session: SessionContext,
    *,
    interests: Optional[Iterable[str]] = None,
    dislikes: Optional[Iterable[str]] = None,
    organization: Optional[str] = None,
) -> User:
    """Edit the signed-in user's matching profile. Fields left as None are untouched."""
    if not session.is_authenticated:
        raise NotAuthenticatedError("Login required")

    with store.locked():
        users = store.get_list(STORAGE_KEYS["USERS"])
        for i, row in enumerate(users):
            if row.get("id") == session.user.id:
                break
        else:
            raise NotAuthenticatedError("Signed-in user no longer exists")

        user = User.from_dict(row)
        if interests is not None:
            user.interests = [str(x).strip() for x in interests if str(x).strip()]
        if dislikes is not None:
            user.dislikes = [str(x).strip() for x in dislikes if str(x).strip()]
        if organization is not None:
            user.organization = organization.strip() or None
        users[i] = {**row, **user.to_dict()}
        store.set_list(STORAGE_KEYS["USERS"], users)

    session.refresh(user)
    return user


def get_user(store: KeyValueStore, user_id: str) -> Optional[User]:
    for row in store.get_list(STORAGE_KEYS["USERS"]):
        if row.get("id") == user_id:
            return User.from_dict(row)
    return None
