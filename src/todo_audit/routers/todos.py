from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .. import history
from ..errors import TodoNotFoundError
from ..models import AuditLogEntity, TodoWithAuditLogs
from ..schemas import AuditLogOut, DeleteOut, TodoCreate, TodoOut, TodoUpdate, TodoWithAuditLogsOut
from ..services import TodoService

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)


def get_todo_service(request: Request) -> TodoService:
    """
    Dependency returning the service built by the application factory.
    """
    return request.app.state.todo_service


def _audit_out(entry: AuditLogEntity) -> AuditLogOut:
    return AuditLogOut(**entry, summary=history.describe(entry))  # type: ignore[arg-type]


def _with_history(item: TodoWithAuditLogs) -> TodoWithAuditLogsOut:
    logs = [_audit_out(entry) for entry in item["audit_logs"]]
    fields = {k: v for k, v in item.items() if k != "audit_logs"}
    return TodoWithAuditLogsOut(**fields, audit_logs=logs)  # type: ignore[arg-type]


def _not_found(exc: TodoNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TodoWithAuditLogsOut],
    summary="List Todos",
    description=(
        "List all live (not soft-deleted) todos, newest first. Each item carries its "
        "audit trail, most recent entry first."
    ),
    responses={200: {"description": "List retrieved successfully"}},
)
def list_todos(service: TodoService = Depends(get_todo_service)) -> List[TodoWithAuditLogsOut]:
    return [_with_history(item) for item in service.get_all()]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}/audit-logs",
    response_model=List[AuditLogOut],
    summary="Todo History",
    description=(
        "Audit trail of one todo, most recent entry first. Also available after the "
        "todo has been deleted; unknown ids return an empty list."
    ),
    responses={200: {"description": "History retrieved successfully"}},
)
def list_audit_logs(todo_id: int, service: TodoService = Depends(get_todo_service)) -> List[AuditLogOut]:
    return [_audit_out(entry) for entry in service.get_audit_logs(todo_id)]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item. A CREATE entry is added to its audit trail.",
    responses={
        201: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_todo(payload: TodoCreate, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    created = service.create(payload)
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Partially update title and/or due_date. Sending due_date as null clears it. "
        "done_flag is ignored; use the toggle endpoint."
    ),
    responses={
        200: {"description": "Todo updated"},
        404: {"description": "Todo not found or has been deleted"},
    },
)
def update_todo(todo_id: int, payload: TodoUpdate, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    try:
        updated = service.update(todo_id, payload)
    except TodoNotFoundError as exc:
        raise _not_found(exc) from exc
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=DeleteOut,
    summary="Delete Todo",
    description=(
        "Soft-delete a Todo item. Deleting a missing or already deleted todo also "
        "succeeds."
    ),
    responses={200: {"description": "Todo deleted"}},
)
def delete_todo(todo_id: int, service: TodoService = Depends(get_todo_service)) -> DeleteOut:
    return DeleteOut(**service.delete(todo_id))


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}/toggle",
    response_model=TodoOut,
    summary="Toggle Todo",
    description="Flip the completion flag of a Todo item.",
    responses={
        200: {"description": "Todo toggled"},
        404: {"description": "Todo not found or has been deleted"},
    },
)
def toggle_todo(todo_id: int, service: TodoService = Depends(get_todo_service)) -> TodoOut:
    try:
        toggled = service.toggle(todo_id)
    except TodoNotFoundError as exc:
        raise _not_found(exc) from exc
    return TodoOut(**toggled)  # type: ignore[arg-type]
