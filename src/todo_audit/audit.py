"""
Audit trail helpers shared by every repository backend.

Each mutation writes exactly one audit row in the same unit of work as the
todo change. Snapshots are serialized to JSON text here and stored as opaque
strings; only the history module decodes them again.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from .models import AuditAction, AuditLogEntity, TodoEntity

Snapshot = Dict[str, Any]


# PUBLIC_INTERFACE
def full_snapshot(todo: TodoEntity) -> Snapshot:
    """Capture the fields recorded by CREATE, UPDATE and DELETE entries."""
    due = todo["due_date"]
    return {
        "title": todo["title"],
        "due_date": due.isoformat() if due is not None else None,
        "done_flag": todo["done_flag"],
    }


# PUBLIC_INTERFACE
def done_flag_snapshot(todo: TodoEntity) -> Snapshot:
    """Capture the narrower snapshot recorded by TOGGLE entries."""
    return {"done_flag": todo["done_flag"]}


def serialize(snapshot: Optional[Snapshot]) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot, ensure_ascii=False)


# PUBLIC_INTERFACE
def new_entry(
    entry_id: int,
    todo_id: int,
    action: AuditAction,
    old: Optional[Snapshot],
    new: Optional[Snapshot],
    created_at: datetime,
) -> AuditLogEntity:
    """Build an audit row with serialized payloads."""
    return {
        "id": entry_id,
        "todo_id": todo_id,
        "action": action.value,
        "old_values": serialize(old),
        "new_values": serialize(new),
        "created_at": created_at,
    }


def newest_first(entry: AuditLogEntity) -> tuple:
    """Sort key giving display order when used with reverse=True."""
    return (entry["created_at"], entry["id"])
