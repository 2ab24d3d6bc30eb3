"""
faithful_city.api.deps — FastAPI dependency injection
======================================================

Identity comes from the external auth provider as an HS256 bearer JWT whose
``sub`` claim is the account id.  Session lifecycle (sign-up, sign-in,
refresh) belongs to that provider; this API only verifies tokens.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from faithful_city.config import FaithfulCityConfig, load_config
from faithful_city.database.engine import create_db_engine, run_db
from faithful_city.engine.views import AccountView
from faithful_city.services.profile_service import find_profile
from faithful_city.services.storage import LocalObjectStorage, storage_from_config

# Placeholders that have shipped in example env files at some point.
_WEAK_SECRETS = frozenset({
    "faithful-dev-secret-change-me",
    "your-super-secret-jwt-token-with-at-least-32-characters-long",
    "change-me",
    "secret",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Read the auth provider's HS256 signing secret; fail fast if unusable."""
    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        raise RuntimeError(
            "JWT_SECRET is not set: copy the JWT signing secret from the "
            "auth provider's project settings into .env."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            "JWT_SECRET is a known weak default placeholder; replace it with "
            "the real signing secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short: {len(secret)} characters, "
            f"need at least {_MIN_SECRET_LENGTH}."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> FaithfulCityConfig:
    return load_config()


def get_storage(
    cfg: Annotated[FaithfulCityConfig, Depends(get_config)],
) -> LocalObjectStorage:
    return storage_from_config(cfg)


def decode_account_id(token: str) -> str:
    """Return the ``sub`` claim of a valid token, else raise 401."""
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return str(sub)


def get_current_account_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return the account id it names."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    return decode_account_id(authorization.split(" ", 1)[1])


async def get_current_account(
    account_id: Annotated[str, Depends(get_current_account_id)],
    engine: Annotated[Engine, Depends(get_engine)],
) -> AccountView:
    """The caller's profile.  403 until they have created one."""
    account = await run_db(find_profile, engine, account_id)
    if account is None:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Profile not created")
    return account


def require_member(account: AccountView, family_id: str) -> None:
    if account.family_id != family_id:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not a member of this family")
