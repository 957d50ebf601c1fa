from __future__ import annotations

from typing import Any, Dict, Optional

from taskboard.errors import ConflictError
from taskboard.util.time import utcnow_iso


# Columns that must never leave the server.
_SECRET_COLUMNS = ("password_hash", "refresh_token")


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    for col in _SECRET_COLUMNS:
        d.pop(col, None)
    return d


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = (username or "").strip()
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()


def get_user_by_refresh_token(conn: Any, refresh_token: str) -> Optional[Any]:
    if not refresh_token:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE refresh_token=?",
        (refresh_token,),
    ).fetchone()


def username_exists(conn: Any, username: str) -> bool:
    row = conn.execute("SELECT 1 FROM users WHERE username=?", (username,)).fetchone()
    return row is not None


def base_username(firstname: str | None, lastname: str | None) -> str:
    """First 4 chars of each name part, lower-cased and concatenated."""
    first = (firstname or "").strip()[:4].lower()
    last = (lastname or "").strip()[:4].lower()
    return (first + last) or "user"


def generate_username(
    conn: Any,
    firstname: str | None,
    lastname: str | None,
    *,
    max_attempts: int,
) -> str:
    """Allocate a unique username: base, then base1, base2, ...

    Gives up with ConflictError after `max_attempts` suffixes.
    """
    base = base_username(firstname, lastname)
    if not username_exists(conn, base):
        return base

    for n in range(1, max(1, int(max_attempts)) + 1):
        candidate = f"{base}{n}"
        if not username_exists(conn, candidate):
            return candidate

    _debug(f"Username allocation exhausted for base={base} after {max_attempts} attempts")
    raise ConflictError("Could not allocate a unique username")


def insert_user(
    conn: Any,
    *,
    username: str,
    firstname: str,
    lastname: str,
    email: str,
    password_hash: str,
    refresh_token: str | None,
) -> None:
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO users (username, firstname, lastname, email, password_hash, refresh_token, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        (username, firstname, lastname, normalize_email(email), password_hash, refresh_token, now, now),
    )


def set_refresh_token(conn: Any, *, username: str, refresh_token: str) -> None:
    """Overwrite the user's single stored refresh token."""
    conn.execute(
        "UPDATE users SET refresh_token=?, updated_at=? WHERE username=?",
        (refresh_token, utcnow_iso(), username),
    )
