from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, List, Optional

from . import audit
from .errors import TodoNotFoundError
from .models import AuditAction, AuditLogEntity, DeleteResult, TodoEntity, TodoWithAuditLogs
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Implementations are the only writers of todos and audit entries. Every
    successful mutation appends exactly one audit entry; failed operations
    append nothing.
    """

    @abstractmethod
    def get_all(self) -> List[TodoWithAuditLogs]:
        """Return live todos, newest first, each with its audit entries newest first."""

    @abstractmethod
    def get_audit_logs(self, todo_id: int) -> List[AuditLogEntity]:
        """
        Return every audit entry of a todo, newest first, including entries of
        a soft-deleted todo. Unknown ids yield an empty list.
        """

    @abstractmethod
    def create(self, data: TodoCreate) -> TodoEntity:
        """Create and return a new TodoEntity, recording a CREATE entry."""

    @abstractmethod
    def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        """
        Apply the provided title/due_date fields and record an UPDATE entry.
        Raises TodoNotFoundError if the todo is missing or soft-deleted.
        """

    @abstractmethod
    def delete(self, todo_id: int) -> DeleteResult:
        """
        Soft-delete a live todo and record a DELETE entry. Missing or already
        deleted todos are left untouched and still report success.
        """

    @abstractmethod
    def toggle(self, todo_id: int) -> TodoEntity:
        """
        Flip done_flag and record a TOGGLE entry.
        Raises TodoNotFoundError if the todo is missing or soft-deleted.
        """


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and local runs.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._clock = clock or datetime.now
        self._todos: Dict[int, TodoEntity] = {}
        self._audit_logs: List[AuditLogEntity] = []
        self._next_todo_id = 1
        self._next_audit_id = 1

    def _now(self) -> datetime:
        return self._clock()

    def _allocate_todo_id(self) -> int:
        i = self._next_todo_id
        self._next_todo_id += 1
        return i

    def _record(
        self,
        todo_id: int,
        action: AuditAction,
        old: Optional[audit.Snapshot],
        new: Optional[audit.Snapshot],
        at: datetime,
    ) -> None:
        entry = audit.new_entry(self._next_audit_id, todo_id, action, old, new, at)
        self._next_audit_id += 1
        self._audit_logs.append(entry)
        logger.info("Recorded %s for todo %s", action.value, todo_id)

    def _get_live(self, todo_id: int) -> TodoEntity:
        existing = self._todos.get(todo_id)
        if existing is None or existing["deleted_at"] is not None:
            logger.warning("Rejected mutation of missing or deleted todo %s", todo_id)
            raise TodoNotFoundError(todo_id)
        return existing

    def get_all(self) -> List[TodoWithAuditLogs]:
        with self._lock:
            live = [t for t in self._todos.values() if t["deleted_at"] is None]
            live.sort(key=lambda t: (t["created_at"], t["id"]), reverse=True)

            by_todo: Dict[int, List[AuditLogEntity]] = {}
            for entry in self._audit_logs:
                by_todo.setdefault(entry["todo_id"], []).append(entry.copy())

            result: List[TodoWithAuditLogs] = []
            for todo in live:
                logs = sorted(by_todo.get(todo["id"], []), key=audit.newest_first, reverse=True)
                item: TodoWithAuditLogs = {**todo, "audit_logs": logs}  # type: ignore[typeddict-item]
                result.append(item)
            return result

    def get_audit_logs(self, todo_id: int) -> List[AuditLogEntity]:
        with self._lock:
            logs = [e.copy() for e in self._audit_logs if e["todo_id"] == todo_id]
        return sorted(logs, key=audit.newest_first, reverse=True)

    def create(self, data: TodoCreate) -> TodoEntity:
        with self._lock:
            now = self._now()
            entity: TodoEntity = {
                "id": self._allocate_todo_id(),
                "title": data.title,
                "due_date": data.due_date,
                "done_flag": False,
                "created_at": now,
                "updated_at": now,
                "deleted_at": None,
            }
            self._todos[entity["id"]] = entity
            self._record(entity["id"], AuditAction.CREATE, None, audit.full_snapshot(entity), now)
            return entity.copy()

    def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._lock:
            existing = self._get_live(todo_id)

            # Update only provided fields
            updated = existing.copy()
            if data.title is not None:
                updated["title"] = data.title
            if data.has_due_date():
                updated["due_date"] = data.due_date
            now = self._now()
            updated["updated_at"] = now

            self._todos[todo_id] = updated
            self._record(
                todo_id, AuditAction.UPDATE, audit.full_snapshot(existing), audit.full_snapshot(updated), now
            )
            return updated.copy()

    def delete(self, todo_id: int) -> DeleteResult:
        with self._lock:
            existing = self._todos.get(todo_id)
            if existing is not None and existing["deleted_at"] is None:
                now = self._now()
                deleted = existing.copy()
                deleted["deleted_at"] = now
                self._todos[todo_id] = deleted
                self._record(todo_id, AuditAction.DELETE, audit.full_snapshot(existing), None, now)
            return {"success": True}

    def toggle(self, todo_id: int) -> TodoEntity:
        with self._lock:
            existing = self._get_live(todo_id)

            updated = existing.copy()
            updated["done_flag"] = not existing["done_flag"]
            now = self._now()
            updated["updated_at"] = now

            self._todos[todo_id] = updated
            self._record(
                todo_id,
                AuditAction.TOGGLE,
                audit.done_flag_snapshot(existing),
                audit.done_flag_snapshot(updated),
                now,
            )
            return updated.copy()


# PUBLIC_INTERFACE
def create_repository(settings: Settings) -> Repository:
    """
    Build the repository selected by settings. Called once by the composition
    root; the instance is then passed to the service.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository backed by settings.sqlite_db_path
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()
