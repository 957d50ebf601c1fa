from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from taskboard.config import Config
from taskboard.util.time import utcnow


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized / corrupt hash.
        return False


def create_token(
    *,
    secret: str,
    username: str,
    token_type: str,
    expires: timedelta,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not username:
        raise ValueError("username_blank")

    issued = now or utcnow()
    payload: Dict[str, Any] = {
        "sub": username,
        "typ": token_type,
        "iat": int(issued.timestamp()),
        "exp": int((issued + expires).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def issue_access_token(cfg: Config, username: str, *, now: Optional[datetime] = None) -> str:
    return create_token(
        secret=cfg.AUTH_JWT_SECRET,
        username=username,
        token_type=ACCESS,
        expires=timedelta(minutes=max(1, int(cfg.AUTH_ACCESS_EXPIRE_MINUTES))),
        now=now,
    )


def issue_refresh_token(cfg: Config, username: str, *, now: Optional[datetime] = None) -> str:
    return create_token(
        secret=cfg.AUTH_REFRESH_SECRET,
        username=username,
        token_type=REFRESH,
        expires=timedelta(days=max(1, int(cfg.AUTH_REFRESH_EXPIRE_DAYS))),
        now=now,
    )


def verify_token(*, token: str, secret: str, token_type: str) -> Dict[str, Any]:
    """Verify signature, expiry and token type.

    Raises:
      - jwt.ExpiredSignatureError: correctly signed but past `exp`
      - jwt.InvalidTokenError: anything else (bad signature, malformed,
        wrong `typ`, missing `sub`)

    ExpiredSignatureError subclasses InvalidTokenError; catch it first.
    """
    if not token:
        raise jwt.InvalidTokenError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")

    payload = jwt.decode(
        token,
        secret,
        algorithms=[_JWT_ALG],
        options={"require": ["exp", "sub"]},
    )
    if payload.get("typ") != token_type:
        raise jwt.InvalidTokenError("token_wrong_type")
    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        raise jwt.InvalidTokenError("token_missing_sub")
    return payload


def decode_unverified(token: str) -> Optional[Dict[str, Any]]:
    """Read a token's payload WITHOUT checking signature or expiry.

    Only for recovering the claimed username of an expired access token so the
    stored refresh token can be looked up. Never use the result for
    authorization.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload
