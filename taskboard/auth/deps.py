from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskboard.config import Config
from taskboard.db import connect
from taskboard.errors import OwnershipError, StoreError, store_errors

from .session import authenticate


_bearer = HTTPBearer(auto_error=False)

OWNERSHIP_MISMATCH = "Username is different."


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise StoreError("server_config_missing")
    return cfg


def get_current_username(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    When the access token had expired but the user's stored refresh token is
    still valid, a new access token is attached to the response under
    `cfg.AUTH_NEW_TOKEN_HEADER`. Clients should check for it and adopt it.
    """
    cfg = get_config(request)
    token = credentials.credentials if credentials is not None else None

    with store_errors("Authentication failed", context="authenticate"):
        with connect(cfg.DB_DSN) as conn:
            outcome = authenticate(conn, cfg, token)

    if outcome.renewed:
        response.headers[cfg.AUTH_NEW_TOKEN_HEADER] = str(outcome.renewed_access_token)
        # Error handlers re-attach it if the endpoint fails after admission.
        request.state.renewed_access_token = outcome.renewed_access_token

    return outcome.username


def require_owner(auth_username: str, claimed_username: str | None) -> None:
    """Reject when the request names a different owner than the caller."""
    if claimed_username is not None and claimed_username != auth_username:
        raise OwnershipError(OWNERSHIP_MISMATCH)
