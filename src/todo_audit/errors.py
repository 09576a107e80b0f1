from __future__ import annotations

NOT_FOUND_OR_DELETED = "Todo not found or has been deleted"


# PUBLIC_INTERFACE
class TodoNotFoundError(LookupError):
    """
    Raised by update and toggle when the target todo does not exist or has
    been soft-deleted. Callers cannot tell the two cases apart.
    """

    def __init__(self, todo_id: int) -> None:
        super().__init__(NOT_FOUND_OR_DELETED)
        self.todo_id = todo_id
