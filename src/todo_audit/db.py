from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Generator, List, Optional

from . import audit
from .errors import TodoNotFoundError
from .models import AuditAction, AuditLogEntity, DeleteResult, TodoEntity, TodoWithAuditLogs
from .repositories import Clock, Repository
from .schemas import TodoCreate, TodoUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TodoCols:
    table: str = "todo"
    id: str = "id"
    title: str = "title"
    due_date: str = "due_date"
    done_flag: str = "done_flag"
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    deleted_at: str = "deleted_at"


@dataclass(frozen=True)
class _AuditCols:
    table: str = "audit_log"
    id: str = "id"
    todo_id: str = "todo_id"
    action: str = "action"
    old_values: str = "old_values"
    new_values: str = "new_values"
    created_at: str = "created_at"


_T = _TodoCols()
_A = _AuditCols()

_ACTIONS = ", ".join(f"'{a.value}'" for a in AuditAction)


def _ts(value: datetime) -> str:
    # Fixed width so that text ordering matches chronological ordering
    return value.isoformat(timespec="microseconds")


def _parse_ts(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


def _parse_date(s: Optional[str]) -> Optional[date]:
    if s is None:
        return None
    return date.fromisoformat(s)


class SQLiteRepository(Repository):
    """
    SQLite-backed repository. Each operation runs in its own transaction; a
    mutation's read, todo write and audit insert commit or roll back together.
    """

    def __init__(self, db_path: str, clock: Optional[Clock] = None) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = clock or datetime.now
        self._init_db()

    def _now(self) -> datetime:
        return self._clock()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Generator[sqlite3.Connection, None, None]:
        """
        Open a connection and run the body in one transaction.

        immediate=True takes the database write lock before the first read so
        concurrent read-modify-write sequences cannot interleave.
        """
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._transaction(immediate=True) as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.table} (
                    {_T.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_T.title} TEXT NOT NULL,
                    {_T.due_date} TEXT NULL,
                    {_T.done_flag} INTEGER NOT NULL DEFAULT 0,
                    {_T.created_at} TEXT NOT NULL,
                    {_T.updated_at} TEXT NOT NULL,
                    {_T.deleted_at} TEXT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_A.table} (
                    {_A.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_A.todo_id} INTEGER NOT NULL REFERENCES {_T.table}({_T.id}),
                    {_A.action} TEXT NOT NULL CHECK ({_A.action} IN ({_ACTIONS})),
                    {_A.old_values} TEXT NULL,
                    {_A.new_values} TEXT NULL,
                    {_A.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_created_at ON {_T.table}({_T.created_at})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_A.table}_todo_id ON {_A.table}({_A.todo_id})"
            )

    def _row_to_todo(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_T.id]),
            "title": str(row[_T.title]),
            "due_date": _parse_date(row[_T.due_date]),
            "done_flag": bool(row[_T.done_flag]),
            "created_at": _parse_ts(row[_T.created_at]),  # type: ignore
            "updated_at": _parse_ts(row[_T.updated_at]),  # type: ignore
            "deleted_at": _parse_ts(row[_T.deleted_at]),
        }

    def _row_to_audit(self, row: sqlite3.Row) -> AuditLogEntity:
        return {
            "id": int(row[_A.id]),
            "todo_id": int(row[_A.todo_id]),
            "action": str(row[_A.action]),
            "old_values": row[_A.old_values],
            "new_values": row[_A.new_values],
            "created_at": _parse_ts(row[_A.created_at]),  # type: ignore
        }

    def _select_todo(self, conn: sqlite3.Connection, todo_id: int) -> Optional[TodoEntity]:
        row = conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (todo_id,)).fetchone()
        return self._row_to_todo(row) if row else None

    def _select_live(self, conn: sqlite3.Connection, todo_id: int) -> TodoEntity:
        existing = self._select_todo(conn, todo_id)
        if existing is None or existing["deleted_at"] is not None:
            logger.warning("Rejected mutation of missing or deleted todo %s", todo_id)
            raise TodoNotFoundError(todo_id)
        return existing

    def _record(
        self,
        conn: sqlite3.Connection,
        todo_id: int,
        action: AuditAction,
        old: Optional[audit.Snapshot],
        new: Optional[audit.Snapshot],
        at: datetime,
    ) -> None:
        conn.execute(
            f"""
            INSERT INTO {_A.table} ({_A.todo_id}, {_A.action}, {_A.old_values},
                {_A.new_values}, {_A.created_at})
            VALUES (?, ?, ?, ?, ?)
            """,
            (todo_id, action.value, audit.serialize(old), audit.serialize(new), _ts(at)),
        )
        logger.info("Recorded %s for todo %s", action.value, todo_id)

    def get_all(self) -> List[TodoWithAuditLogs]:
        with self._transaction() as conn:
            todo_rows = conn.execute(
                f"""
                SELECT * FROM {_T.table}
                WHERE {_T.deleted_at} IS NULL
                ORDER BY {_T.created_at} DESC, {_T.id} DESC
                """
            ).fetchall()
            audit_rows = conn.execute(
                f"""
                SELECT {_A.table}.* FROM {_A.table}
                JOIN {_T.table} ON {_T.table}.{_T.id} = {_A.table}.{_A.todo_id}
                WHERE {_T.table}.{_T.deleted_at} IS NULL
                ORDER BY {_A.table}.{_A.created_at} DESC, {_A.table}.{_A.id} DESC
                """
            ).fetchall()

        by_todo: Dict[int, List[AuditLogEntity]] = {}
        for row in audit_rows:
            entry = self._row_to_audit(row)
            by_todo.setdefault(entry["todo_id"], []).append(entry)

        result: List[TodoWithAuditLogs] = []
        for row in todo_rows:
            todo = self._row_to_todo(row)
            item: TodoWithAuditLogs = {**todo, "audit_logs": by_todo.get(todo["id"], [])}  # type: ignore[typeddict-item]
            result.append(item)
        return result

    def get_audit_logs(self, todo_id: int) -> List[AuditLogEntity]:
        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_A.table}
                WHERE {_A.todo_id} = ?
                ORDER BY {_A.created_at} DESC, {_A.id} DESC
                """,
                (todo_id,),
            ).fetchall()
        return [self._row_to_audit(row) for row in rows]

    def create(self, data: TodoCreate) -> TodoEntity:
        now = self._now()
        due = data.due_date.isoformat() if data.due_date else None
        with self._transaction(immediate=True) as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_T.table} ({_T.title}, {_T.due_date}, {_T.done_flag},
                    {_T.created_at}, {_T.updated_at}, {_T.deleted_at})
                VALUES (?, ?, 0, ?, ?, NULL)
                """,
                (data.title, due, _ts(now), _ts(now)),
            )
            created = self._select_todo(conn, int(cur.lastrowid))
            assert created is not None
            self._record(conn, created["id"], AuditAction.CREATE, None, audit.full_snapshot(created), now)
            return created

    def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._transaction(immediate=True) as conn:
            existing = self._select_live(conn, todo_id)

            title = data.title if data.title is not None else existing["title"]
            due_date = data.due_date if data.has_due_date() else existing["due_date"]
            now = self._now()
            conn.execute(
                f"""
                UPDATE {_T.table}
                SET {_T.title} = ?, {_T.due_date} = ?, {_T.updated_at} = ?
                WHERE {_T.id} = ?
                """,
                (title, due_date.isoformat() if due_date else None, _ts(now), todo_id),
            )
            updated = self._select_todo(conn, todo_id)
            assert updated is not None
            self._record(
                conn, todo_id, AuditAction.UPDATE, audit.full_snapshot(existing), audit.full_snapshot(updated), now
            )
            return updated

    def delete(self, todo_id: int) -> DeleteResult:
        with self._transaction(immediate=True) as conn:
            existing = self._select_todo(conn, todo_id)
            if existing is not None and existing["deleted_at"] is None:
                now = self._now()
                conn.execute(
                    f"UPDATE {_T.table} SET {_T.deleted_at} = ? WHERE {_T.id} = ?",
                    (_ts(now), todo_id),
                )
                self._record(conn, todo_id, AuditAction.DELETE, audit.full_snapshot(existing), None, now)
        return {"success": True}

    def toggle(self, todo_id: int) -> TodoEntity:
        with self._transaction(immediate=True) as conn:
            existing = self._select_live(conn, todo_id)
            now = self._now()
            conn.execute(
                f"UPDATE {_T.table} SET {_T.done_flag} = ?, {_T.updated_at} = ? WHERE {_T.id} = ?",
                (0 if existing["done_flag"] else 1, _ts(now), todo_id),
            )
            updated = self._select_todo(conn, todo_id)
            assert updated is not None
            self._record(
                conn,
                todo_id,
                AuditAction.TOGGLE,
                audit.done_flag_snapshot(existing),
                audit.done_flag_snapshot(updated),
                now,
            )
            return updated
