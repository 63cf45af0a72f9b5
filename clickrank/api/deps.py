"""
clickrank.api.deps — FastAPI dependency injection
==================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from clickrank.config import ClickrankConfig, load_config
from clickrank.database.engine import create_db_engine
from clickrank.engine.cache import CatalogCache
from clickrank.services.ledger import SqlLedger

_WEAK_SECRETS = frozenset({
    "clickrank-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ClickrankConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_ledger() -> SqlLedger:
    return SqlLedger(get_engine())


@lru_cache(maxsize=1)
def get_catalog() -> CatalogCache:
    return CatalogCache(get_ledger())


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return its subject (the user id)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return str(user_id)


CurrentUser = Annotated[str, Depends(get_current_user)]
LedgerDep = Annotated[SqlLedger, Depends(get_ledger)]
CatalogDep = Annotated[CatalogCache, Depends(get_catalog)]
