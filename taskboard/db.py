from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from taskboard.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single/double-quoted literals. Not a full SQL parser, but
    sufficient for the statements in this codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            in_double = not in_double
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Connect to SQLite or Postgres; commit on success, roll back on error.

    - SQLite: WAL + NORMAL sync, rows are sqlite3.Row.
    - Postgres: psycopg2 with RealDictCursor so rows behave like dicts.
    """
    dsn = (db_dsn or "").strip()
    dialect = _detect_dialect(dsn)

    if dialect == "postgres":
        try:
            import psycopg2
            import psycopg2.extras
        except ImportError as e:
            raise RuntimeError(
                "Postgres selected but psycopg2 is not installed. "
                "Install the 'postgres' extra (psycopg2-binary) and try again."
            ) from e

        raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
        conn = PGConnection(raw)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return

    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables and run lightweight migrations."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect})")
    with connect(db_dsn) as conn:
        schema_sql = get_schema_sql(dialect)
        if dialect == "postgres":
            # Only one process runs schema DDL at a time.
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
                _migrate(conn, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)
            _migrate(conn, dialect=dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        # Naive split is OK for our schema (no ';' inside literals).
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    conn.executescript(ddl)


def _has_column(conn: Any, table: str, col: str, *, dialect: str) -> bool:
    if dialect == "postgres":
        r = conn.execute(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema='public'
              AND table_name=?
              AND column_name=?
            LIMIT 1
            """,
            (table, col),
        ).fetchone()
        return r is not None

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r["name"] == col for r in rows)


def _migrate(conn: Any, *, dialect: str) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    # Databases created before refresh tokens were stored on the user row.
    if not _has_column(conn, "users", "refresh_token", dialect=dialect):
        _debug("Migrating: users.refresh_token")
        conn.execute("ALTER TABLE users ADD COLUMN refresh_token TEXT")

    # Task bookkeeping timestamps (existing rows get an empty string).
    for col in ("created_at", "updated_at"):
        if not _has_column(conn, "tasks", col, dialect=dialect):
            _debug(f"Migrating: tasks.{col}")
            conn.execute(f"ALTER TABLE tasks ADD COLUMN {col} TEXT NOT NULL DEFAULT ''")

    # Standalone /refresh looks users up by their exact refresh token.
    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_refresh_token ON users (refresh_token)")
