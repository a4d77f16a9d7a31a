"""
Structured exceptions and error responses for Taskboard.

Provides consistent error handling across the API with:
- Custom exception classes
- Structured error response format ({success: false, error, message, errors})
- FastAPI exception handlers
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard.logging_config import get_logger

logger = get_logger("taskboard.error")


# =============================================================================
# Error Response Schema
# =============================================================================

FieldErrors = Dict[str, List[str]]


class ErrorResponse(BaseModel):
    """Structured error response format."""
    success: bool = False
    error: str  # Error code (e.g., "not_found", "circular_dependency")
    message: str  # Human-readable message
    errors: Optional[FieldErrors] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class TaskboardException(Exception):
    """Base exception for all Taskboard errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors: Optional[FieldErrors] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.errors = errors
        super().__init__(message)


class NotFoundError(TaskboardException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: Any, message: Optional[str] = None):
        super().__init__(
            message=message or f"{resource} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(TaskboardException):
    """Request validation error."""

    def __init__(self, message: str = "Validation failed", errors: Optional[FieldErrors] = None):
        super().__init__(
            message=message,
            error_code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=errors,
        )


class InvalidReferenceError(ValidationError):
    """A payload field references a row that does not exist."""

    def __init__(self, field: str, resource: str, resource_id: Any):
        super().__init__(
            message=f"The selected {field} is invalid.",
            errors={field: [f"{resource} {resource_id} does not exist."]},
        )
        self.field = field
        self.resource_id = resource_id


class SelfDependencyError(ValidationError):
    """Task cannot depend on itself."""

    def __init__(self, task_id: int):
        super().__init__(
            message="A task cannot depend on itself.",
            errors={"depends_on_task_id": ["The depends on task id and task id must be different."]},
        )
        self.error_code = "self_dependency"
        self.task_id = task_id


class DuplicateDependencyError(TaskboardException):
    """Dependency already exists."""

    def __init__(self, task_id: int, depends_on_task_id: int):
        super().__init__(
            message="This dependency already exists.",
            error_code="duplicate_dependency",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id


class CircularDependencyError(TaskboardException):
    """Adding a dependency would create a cycle."""

    def __init__(self, task_id: int, depends_on_task_id: int):
        super().__init__(
            message="Cannot add dependency. This would create a circular dependency.",
            error_code="circular_dependency",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
        self.task_id = task_id
        self.depends_on_task_id = depends_on_task_id


class DependentsExistError(TaskboardException):
    """Task cannot be deleted while other tasks depend on it."""

    def __init__(self, task_id: int, dependent_ids: List[int]):
        super().__init__(
            message="Cannot delete task. Other tasks depend on it.",
            error_code="dependents_exist",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors={"dependents": [f"Task {dep_id} depends on this task." for dep_id in dependent_ids]},
        )
        self.task_id = task_id
        self.dependent_ids = dependent_ids


class IncompleteDependenciesError(TaskboardException):
    """Task cannot be completed while a direct dependency is not completed."""

    def __init__(self, task_id: int, incomplete_ids: List[int]):
        super().__init__(
            message="Cannot complete task. Some dependencies are not yet completed.",
            error_code="incomplete_dependencies",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors={"status": [f"Task {dep_id} is not completed." for dep_id in incomplete_ids]},
        )
        self.task_id = task_id
        self.incomplete_ids = incomplete_ids


class ForbiddenError(TaskboardException):
    """Authenticated user lacks the role or assignment required."""

    def __init__(self, message: str = "Forbidden"):
        if not message.startswith("Unauthorized"):
            message = f"Unauthorized. {message}"
        super().__init__(
            message=message,
            error_code="forbidden",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class UnauthenticatedError(TaskboardException):
    """Missing or invalid credentials."""

    def __init__(self, message: str = "Unauthenticated."):
        super().__init__(
            message=message,
            error_code="unauthenticated",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class StoreFailureError(TaskboardException):
    """Persistence failed; details are logged, never returned."""

    def __init__(self, operation: str):
        super().__init__(
            message="An unexpected error occurred",
            error_code="internal_error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.operation = operation


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_content(error: str, message: str, errors: Optional[FieldErrors] = None) -> dict:
    content = {"success": False, "error": error, "message": message}
    if errors:
        content["errors"] = errors
    return content


async def taskboard_exception_handler(request: Request, exc: TaskboardException) -> JSONResponse:
    """Handle TaskboardException and return structured response."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.error_code, exc.message, exc.errors),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's validation errors into field -> messages."""
    errors: FieldErrors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_content("validation_error", "Validation failed", errors),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep framework-raised HTTP errors (unknown routes, 405) in the same shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content("http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_content("internal_error", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TaskboardException, taskboard_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
