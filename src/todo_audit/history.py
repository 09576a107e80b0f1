"""
Decoding of audit payloads for display.

The repositories store old_values/new_values as opaque JSON text. This module
is the presentation-side reader: it decodes the payloads into a typed shape
chosen by the entry's action and renders a one-line summary of the change.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Optional, Union

from .models import AuditAction, AuditLogEntity


@dataclass(frozen=True)
class TodoSnapshot:
    """Payload of CREATE, UPDATE and DELETE entries."""

    title: str
    due_date: Optional[str]
    done_flag: bool


@dataclass(frozen=True)
class DoneFlagSnapshot:
    """Payload of TOGGLE entries."""

    done_flag: bool


AuditSnapshot = Union[TodoSnapshot, DoneFlagSnapshot]


def decode(action: str, raw: Optional[str]) -> Optional[AuditSnapshot]:
    """Decode one payload according to the action that produced it."""
    if raw is None:
        return None
    data = json.loads(raw)
    if action == AuditAction.TOGGLE.value:
        return DoneFlagSnapshot(done_flag=bool(data["done_flag"]))
    return TodoSnapshot(
        title=data["title"],
        due_date=data.get("due_date"),
        done_flag=bool(data.get("done_flag", False)),
    )


def _status(done: bool) -> str:
    return "done" if done else "not done"


def changes(entry: AuditLogEntity) -> List[str]:
    """List the field-level changes of an UPDATE or TOGGLE entry."""
    old = decode(entry["action"], entry["old_values"])
    new = decode(entry["action"], entry["new_values"])
    if old is None or new is None:
        return []

    if isinstance(old, DoneFlagSnapshot):
        return [f"status: {_status(old.done_flag)} -> {_status(new.done_flag)}"]

    assert isinstance(new, TodoSnapshot)
    result = []
    if old.title != new.title:
        result.append(f'title: "{old.title}" -> "{new.title}"')
    if old.due_date != new.due_date:
        result.append(f"due date: {old.due_date or 'unset'} -> {new.due_date or 'unset'}")
    return result


# PUBLIC_INTERFACE
def describe(entry: AuditLogEntity) -> str:
    """Render a short human readable summary of an audit entry."""
    action = entry["action"]
    if action == AuditAction.CREATE.value:
        snap = decode(action, entry["new_values"])
        title = snap.title if isinstance(snap, TodoSnapshot) else ""
        return f'Created "{title}"'
    if action == AuditAction.UPDATE.value:
        diff = changes(entry)
        return "Updated " + "; ".join(diff) if diff else "Updated with no changes"
    if action == AuditAction.TOGGLE.value:
        new = decode(action, entry["new_values"])
        if isinstance(new, DoneFlagSnapshot):
            return "Marked as done" if new.done_flag else "Marked as not done"
        return "Toggled status"
    if action == AuditAction.DELETE.value:
        return "Deleted"
    return "Unknown action"
