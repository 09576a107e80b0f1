from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

TITLE_MAX_LENGTH = 255


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Internal helper to normalize due_date input into a calendar date.
    - None or an empty string means "no due date".
    - A datetime keeps only its date part.
    - A string is parsed as an ISO date, falling back to an ISO datetime.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use an ISO8601 date string (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _validate_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "due_date": "2025-02-01",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item", max_length=TITLE_MAX_LENGTH)
    due_date: Optional[date] = Field(default=None, description="Optional due date (YYYY-MM-DD)")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..255 length.
        """
        return _validate_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    Only provided fields are applied. Sending "due_date": null clears the due
    date. done_flag is accepted for compatibility with the edit form but the
    repositories ignore it; use the toggle operation instead.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy oat milk",
                "due_date": "2025-02-02",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", max_length=TITLE_MAX_LENGTH)
    due_date: Optional[date] = Field(default=None, description="Optional due date (YYYY-MM-DD)")
    done_flag: Optional[bool] = Field(default=None, description="Ignored; completion changes go through toggle")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..255 length.
        Only runs for a title that was sent, since defaults are not validated.
        """
        if v is None:
            # Omitting title is allowed; an explicit null is not
            raise ValueError("title must be a string when provided")
        return _validate_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)

    def has_due_date(self) -> bool:
        """True when due_date was sent explicitly, including an explicit null."""
        return "due_date" in self.model_fields_set


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Buy milk",
                "due_date": None,
                "done_flag": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": "2025-01-25T10:15:30.123456",
                "deleted_at": None,
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    due_date: Optional[date] = Field(default=None, description="Due date as YYYY-MM-DD")
    done_flag: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete timestamp")


# PUBLIC_INTERFACE
class AuditLogOut(BaseModel):
    """
    One audit entry. old_values/new_values are JSON-encoded snapshots; their
    fields depend on the action.
    """

    id: int
    todo_id: int
    action: Literal["CREATE", "UPDATE", "TOGGLE", "DELETE"]
    old_values: Optional[str] = Field(default=None, description="JSON snapshot before the action")
    new_values: Optional[str] = Field(default=None, description="JSON snapshot after the action")
    created_at: datetime
    summary: str = Field(..., description="Human readable description of the change")


# PUBLIC_INTERFACE
class TodoWithAuditLogsOut(TodoOut):
    """Todo item with its audit trail, most recent entry first."""

    audit_logs: List[AuditLogOut] = Field(default_factory=list)


class DeleteOut(BaseModel):
    success: Literal[True] = True
