"""Session manager: login, registration and per-request authentication.

A request's authentication attempt moves through:

    Unauthenticated -> Verifying -> Admitted | Renewing | Rejected
    Renewing -> Admitted | Rejected

Admission returns a `SessionOutcome`; rejection raises `AuthError`.

Renewal: when an access token is correctly signed but expired, the claimed
username is read from it *without* verification and used only to look up the
user's stored refresh token. Verifying that refresh token is what re-establishes
trust, and the username inside it is authoritative. Renewal never writes to the
store, so concurrent renewals for the same user are harmless.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

import jwt

from taskboard.config import Config
from taskboard.errors import AuthError, ConflictError, ValidationError
from taskboard.models import LoginResult, SessionOutcome

from .crud import (
    generate_username,
    get_user_by_email,
    get_user_by_refresh_token,
    get_user_by_username,
    insert_user,
    normalize_email,
    public_user,
    set_refresh_token,
)
from .security import (
    ACCESS,
    REFRESH,
    decode_unverified,
    hash_password,
    issue_access_token,
    issue_refresh_token,
    verify_password,
    verify_token,
)


ACCESS_TOKEN_REQUIRED = "Access token required"
ACCESS_TOKEN_INVALID = "Invalid or expired token"
REFRESH_TOKEN_REQUIRED = "Refresh token required"
REFRESH_TOKEN_UNKNOWN = "Invalid refresh token"
REFRESH_TOKEN_INVALID = "Invalid or expired refresh token"
LOGIN_INVALID = "Invalid email or password"

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def _mint_from_refresh(cfg: Config, refresh_token: str, *, reject_message: str) -> Tuple[str, str]:
    """Verify a refresh token and mint an access token for the username it carries."""
    try:
        payload = verify_token(token=refresh_token, secret=cfg.AUTH_REFRESH_SECRET, token_type=REFRESH)
    except jwt.ExpiredSignatureError:
        _debug("Refresh token expired; re-login required")
        raise AuthError(reject_message, status_code=403)
    except jwt.InvalidTokenError as e:
        _debug(f"Refresh token rejected: {e}")
        raise AuthError(reject_message, status_code=403)

    username = str(payload["sub"])
    return username, issue_access_token(cfg, username)


def _renew(conn: Any, cfg: Config, expired_access_token: str) -> SessionOutcome:
    claims = decode_unverified(expired_access_token) or {}
    claimed = claims.get("sub")

    row = get_user_by_username(conn, claimed) if isinstance(claimed, str) else None
    stored: Optional[str] = row["refresh_token"] if row is not None else None
    if not stored:
        _debug(f"Renewal rejected: no refresh token on file for username={claimed!r}")
        raise AuthError(REFRESH_TOKEN_UNKNOWN, status_code=403)

    username, access_token = _mint_from_refresh(cfg, stored, reject_message=REFRESH_TOKEN_INVALID)
    if username != claimed:
        _debug(f"Renewal: refresh token username={username} differs from claimed={claimed}")
    _debug(f"Renewed access token for username={username}")
    return SessionOutcome(username=username, renewed_access_token=access_token)


def authenticate(conn: Any, cfg: Config, token: Optional[str]) -> SessionOutcome:
    """Admit or reject a request carrying `token` (a bearer access token)."""
    if not token:
        raise AuthError(ACCESS_TOKEN_REQUIRED, status_code=401, headers=_BEARER_CHALLENGE)

    try:
        payload = verify_token(token=token, secret=cfg.AUTH_JWT_SECRET, token_type=ACCESS)
    except jwt.ExpiredSignatureError:
        return _renew(conn, cfg, token)
    except jwt.InvalidTokenError as e:
        _debug(f"Access token rejected: {e}")
        raise AuthError(ACCESS_TOKEN_INVALID, status_code=403)

    return SessionOutcome(username=str(payload["sub"]))


def refresh_access(conn: Any, cfg: Config, refresh_token: Optional[str]) -> SessionOutcome:
    """Exchange a refresh token (as stored for some user) for a new access token."""
    if not refresh_token:
        raise AuthError(REFRESH_TOKEN_REQUIRED, status_code=401)

    if get_user_by_refresh_token(conn, refresh_token) is None:
        _debug("Refresh rejected: token not on file")
        raise AuthError(REFRESH_TOKEN_UNKNOWN, status_code=403)

    username, access_token = _mint_from_refresh(cfg, refresh_token, reject_message=REFRESH_TOKEN_UNKNOWN)
    return SessionOutcome(username=username, renewed_access_token=access_token)


def login(conn: Any, cfg: Config, *, email: str, password: str) -> LoginResult:
    row = get_user_by_email(conn, email)
    if row is None:
        _debug("Login failed: unknown email")
        raise AuthError(LOGIN_INVALID, status_code=400)

    if not verify_password(password, str(row["password_hash"])):
        _debug(f"Login failed: wrong password for username={row['username']}")
        raise AuthError(LOGIN_INVALID, status_code=400)

    username = str(row["username"])
    refresh_token = row["refresh_token"]
    if refresh_token:
        try:
            verify_token(token=refresh_token, secret=cfg.AUTH_REFRESH_SECRET, token_type=REFRESH)
        except jwt.InvalidTokenError:
            _debug(f"Stored refresh token unusable for username={username}; issuing a new one")
            refresh_token = None

    if not refresh_token:
        refresh_token = issue_refresh_token(cfg, username)
        set_refresh_token(conn, username=username, refresh_token=refresh_token)

    return LoginResult(
        access_token=issue_access_token(cfg, username),
        refresh_token=refresh_token,
        user=public_user(row),
    )


def register(
    conn: Any,
    cfg: Config,
    *,
    firstname: str | None,
    lastname: str | None,
    email: str | None,
    password: str | None,
) -> dict:
    """Create an identity. Does not log the user in."""
    e = normalize_email(email)
    if not e or not password:
        raise ValidationError("Email & password fields are required")

    if get_user_by_email(conn, e) is not None:
        raise ConflictError("Email already registered", status_code=400)

    password_hash = hash_password(password)
    username = generate_username(conn, firstname, lastname, max_attempts=cfg.AUTH_HANDLE_MAX_ATTEMPTS)

    insert_user(
        conn,
        username=username,
        firstname=(firstname or "").strip(),
        lastname=(lastname or "").strip(),
        email=e,
        password_hash=password_hash,
        refresh_token=issue_refresh_token(cfg, username),
    )
    _debug(f"Registered username={username}")

    row = get_user_by_username(conn, username)
    assert row is not None
    return public_user(row)
