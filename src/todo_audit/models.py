from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Literal, Optional, TypedDict


class AuditAction(str, Enum):
    """Closed set of actions recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    TOGGLE = "TOGGLE"
    DELETE = "DELETE"


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo row.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Short title (1..255 chars, trimmed on input via schemas)
    - due_date: Optional calendar date
    - done_flag: Completion flag, False at creation
    - created_at: Creation timestamp, never changes
    - updated_at: Refreshed by update and toggle
    - deleted_at: Soft-delete marker; None while the todo is live
    """

    id: int
    title: str
    due_date: Optional[date]
    done_flag: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime]


# PUBLIC_INTERFACE
class AuditLogEntity(TypedDict):
    """
    One append-only audit record. old_values/new_values hold JSON text
    snapshots and are never interpreted by the repositories.
    """

    id: int
    todo_id: int
    action: str
    old_values: Optional[str]
    new_values: Optional[str]
    created_at: datetime


class TodoWithAuditLogs(TodoEntity):
    """Todo joined with its audit entries, newest first."""

    audit_logs: List[AuditLogEntity]


class DeleteResult(TypedDict):
    success: Literal[True]
