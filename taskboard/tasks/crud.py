from __future__ import annotations

from typing import Any, Dict, List, Optional

from taskboard.util.time import utcnow_iso


# Fields a client may change through /updateTask.
MUTABLE_FIELDS = ("task_description", "task_priority", "datetime", "is_completed")


def _debug(msg: str) -> None:
    print(f"[tasks] {msg}")


def public_task(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d["is_completed"] = bool(d.get("is_completed"))
    return d


def get_task(conn: Any, task_id: str) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM tasks WHERE task_id=?",
        (task_id,),
    ).fetchone()


def add_task(
    conn: Any,
    *,
    task_id: str,
    username: str,
    task_priority: str,
    datetime: str,
    task_description: str,
    is_completed: bool,
) -> None:
    now = utcnow_iso()
    conn.execute(
        """
        INSERT INTO tasks (task_id, username, task_priority, datetime, task_description, is_completed, created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?)
        """,
        (task_id, username, task_priority, datetime, task_description, 1 if is_completed else 0, now, now),
    )
    _debug(f"Added task_id={task_id} username={username}")


def list_tasks(conn: Any, username: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM tasks WHERE username=? ORDER BY record_id",
        (username,),
    ).fetchall()
    return [public_task(r) for r in rows]


def delete_tasks(conn: Any, *, username: str, task_id: str | None = None) -> int:
    """Delete one task (when task_id is given) or all of a user's tasks.

    Returns the number of rows removed.
    """
    if task_id:
        cur = conn.execute(
            "DELETE FROM tasks WHERE username=? AND task_id=?",
            (username, task_id),
        )
    else:
        cur = conn.execute("DELETE FROM tasks WHERE username=?", (username,))
    n = int(cur.rowcount or 0)
    _debug(f"Deleted {n} task(s) username={username} task_id={task_id}")
    return n


def update_task(conn: Any, task_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply a partial update and return the merged task (None if no such task)."""
    # Build dynamic SQL so we only touch provided fields.
    sets: list[tuple[str, Any]] = []
    for k in MUTABLE_FIELDS:
        if k not in fields:
            continue
        v = fields[k]
        if k == "is_completed":
            v = 1 if v else 0
        sets.append((k, v))

    if not sets:
        raise ValueError("no_fields")

    sets.append(("updated_at", utcnow_iso()))
    sql = ", ".join([f"{k}=?" for k, _ in sets])
    params = [v for _, v in sets] + [task_id]
    cur = conn.execute(f"UPDATE tasks SET {sql} WHERE task_id=?", params)
    if int(cur.rowcount or 0) == 0:
        return None

    row = get_task(conn, task_id)
    return public_task(row) if row is not None else None
