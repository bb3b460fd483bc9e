"""
Typed errors for webcms.

Every error raised by the content services carries an ``ErrorKind``. They are
HTTP exceptions so controllers can pass them through untouched.
"""
from enum import Enum as PyEnum
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError


class ErrorKind(str, PyEnum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    AUTHORIZATION = "AUTHORIZATION"
    CONFLICT = "CONFLICT"
    DATABASE = "DATABASE"
    EXTERNAL = "EXTERNAL"


class CmsError(HTTPException):
    """Base class for content engine errors."""

    kind: ErrorKind = ErrorKind.DATABASE
    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_operational: bool = True

    def __init__(self, detail: str, details: Any = None):
        super().__init__(status_code=self.status_code_default, detail=detail)
        self.details = details

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.detail}"


class ValidationError(CmsError):
    """Malformed id, out-of-range order or malformed reorder payload."""

    kind = ErrorKind.VALIDATION
    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFoundError(CmsError):
    """Resource not found exception."""

    kind = ErrorKind.NOT_FOUND
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", details: Any = None):
        super().__init__(f"{resource} not found", details)


class AuthorizationError(CmsError):
    """Principal lacks the required role on the enclosing website."""

    kind = ErrorKind.AUTHORIZATION
    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Access denied", details: Any = None):
        super().__init__(detail, details)


class ConflictError(CmsError):
    """Concurrent write produced a duplicate or a transaction conflict."""

    kind = ErrorKind.CONFLICT
    status_code_default = status.HTTP_409_CONFLICT


class DatabaseError(CmsError):
    """Store failure not classified above."""

    kind = ErrorKind.DATABASE
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_operational = False


class ExternalServiceError(CmsError):
    """Asset store failure. Never fatal to the triggering operation."""

    kind = ErrorKind.EXTERNAL
    status_code_default = status.HTTP_502_BAD_GATEWAY


# PostgreSQL serialization failure and deadlock
_CONFLICT_SQLSTATES = {"40001", "40P01"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def classify_db_error(exc: Exception, operation: str) -> CmsError:
    """Map a store exception onto the error taxonomy."""
    if isinstance(exc, CmsError):
        return exc
    if isinstance(exc, IntegrityError):
        return ConflictError(
            f"Conflicting write during {operation}",
            details={"error": str(exc.orig)},
        )
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in _CONFLICT_SQLSTATES or "database is locked" in str(exc.orig):
            return ConflictError(
                f"Transaction conflict during {operation}, please retry",
                details={"error": str(exc.orig)},
            )
    if isinstance(exc, SQLAlchemyError):
        return DatabaseError(f"Database failure during {operation}", details={"error": str(exc)})
    return DatabaseError(f"Unexpected failure during {operation}", details={"error": repr(exc)})
