from __future__ import annotations

from typing import List

from .models import AuditLogEntity, DeleteResult, TodoEntity, TodoWithAuditLogs
from .repositories import Repository
from .schemas import TodoCreate, TodoUpdate


# PUBLIC_INTERFACE
class TodoService:
    """
    Facade used by the HTTP layer. Forwards every call to the repository it
    was constructed with, so the router does not depend on the storage backend.
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository

    @property
    def repository(self) -> Repository:
        return self._repository

    def get_all(self) -> List[TodoWithAuditLogs]:
        return self._repository.get_all()

    def get_audit_logs(self, todo_id: int) -> List[AuditLogEntity]:
        return self._repository.get_audit_logs(todo_id)

    def create(self, data: TodoCreate) -> TodoEntity:
        return self._repository.create(data)

    def update(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        return self._repository.update(todo_id, data)

    def delete(self, todo_id: int) -> DeleteResult:
        return self._repository.delete(todo_id)

    def toggle(self, todo_id: int) -> TodoEntity:
        return self._repository.toggle(todo_id)
