"""Error taxonomy shared by the repository, the stores and the HTTP layer.

Every error carries the HTTP status it maps to and a short machine code; the
API renders them as an ``ErrorEnvelope``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class KanbanError(Exception):
    status_code = 500
    code = "internal_error"
    message = "internal error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class Unauthorized(KanbanError):
    status_code = 401
    code = "unauthorized"
    message = "User not authorized"
    headers = {"WWW-Authenticate": "Bearer"}


class NotFound(KanbanError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class BoardNotFound(NotFound):
    code = "board_not_found"
    message = "Board not found"


class ColumnNotFound(NotFound):
    code = "column_not_found"
    message = "Column not found"


class TaskNotFound(NotFound):
    code = "task_not_found"
    message = "Task not found"


class ValidationError(KanbanError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class VersionConflict(KanbanError):
    status_code = 409
    code = "conflict"
    message = "Board was modified concurrently"


class PreconditionFailed(KanbanError):
    status_code = 412
    code = "precondition_failed"
    message = "Board version does not match If-Match"


class StoreFailure(KanbanError):
    status_code = 500
    code = "store_failure"
    message = "Document store failure"
