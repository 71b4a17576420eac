"""Error taxonomy and classification of backend errors.

Store adapters translate whatever their backend raises into a
:class:`BackendError` payload at the boundary, and :func:`error_from_backend`
turns that payload into one of the exceptions below. Callers only ever handle
the taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from sqlalchemy.exc import DBAPIError

REAUTHENTICATE_MESSAGE = (
    "User authentication issue. "
    "Please sign out and sign in again to refresh your session."
)


class ErrorKind(str, Enum):
    unauthenticated = "unauthenticated"
    duplicate_name = "duplicate_name"
    validation_failed = "validation_failed"
    referential_integrity = "referential_integrity"
    not_found = "not_found"
    unknown = "unknown"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class BackendError:
    code: Optional[Union[str, int]] = None
    message: str = ""
    details: Optional[str] = None
    hint: Optional[str] = None
    status: Optional[int] = None


class ExpenseTrackerError(Exception):
    kind = ErrorKind.unknown

    def __init__(self, message: str, *, backend: Optional[BackendError] = None) -> None:
        super().__init__(message)
        self.message = message
        self.backend = backend

    @property
    def requires_reauthentication(self) -> bool:
        return False


class Unauthenticated(ExpenseTrackerError):
    kind = ErrorKind.unauthenticated

    @property
    def requires_reauthentication(self) -> bool:
        return True


class ReferentialIntegrityViolation(Unauthenticated):
    """The owner reference on a write no longer points at a known user."""

    kind = ErrorKind.referential_integrity


class DuplicateName(ExpenseTrackerError):
    kind = ErrorKind.duplicate_name


class UniqueConstraintViolation(DuplicateName):
    """Duplicate reported by the store rather than by local validation."""


class ValidationFailed(ExpenseTrackerError):
    kind = ErrorKind.validation_failed

    def __init__(
        self,
        message: str,
        *,
        field_errors: Optional[list[FieldError]] = None,
        backend: Optional[BackendError] = None,
    ) -> None:
        super().__init__(message, backend=backend)
        self.field_errors = list(field_errors or [])


class NotFound(ExpenseTrackerError):
    kind = ErrorKind.not_found


class UnknownBackendError(ExpenseTrackerError):
    kind = ErrorKind.unknown


_REFERENTIAL_CODES = {"23503"}
_AUTH_CODES = {"AUTH_USER_NOT_FOUND", "PGRST301", "PGRST302"}
_DUPLICATE_CODES = {"23505"}
_VALIDATION_CODES = {"23514", "22P02", "23502", "22003", "22007", "22008"}
_NOT_FOUND_CODES = {"PGRST116"}

_DUPLICATE_MARKERS = ("duplicate", "unique", "conflict", "already exists")
_VALIDATION_MARKERS = ("check constraint", "not null constraint", "invalid input")
_AUTH_MARKERS = ("jwt", "not authenticated", "no authenticated user")


def classify_backend_error(error: BackendError) -> ErrorKind:
    code = str(error.code) if error.code is not None else ""
    message = (error.message or "").lower()
    details = (error.details or "").lower()
    status = error.status
    if isinstance(error.code, int) and status is None:
        status = error.code

    if code in _REFERENTIAL_CODES or "foreign key constraint" in message:
        return ErrorKind.referential_integrity
    if code in _AUTH_CODES or status in (401, 403):
        return ErrorKind.unauthenticated
    if any(marker in message for marker in _AUTH_MARKERS):
        return ErrorKind.unauthenticated
    if code in _DUPLICATE_CODES or status == 409:
        return ErrorKind.duplicate_name
    if any(marker in message for marker in _DUPLICATE_MARKERS) or "unique" in details:
        return ErrorKind.duplicate_name
    if code in _VALIDATION_CODES or status in (400, 422):
        return ErrorKind.validation_failed
    if any(marker in message for marker in _VALIDATION_MARKERS):
        return ErrorKind.validation_failed
    if code in _NOT_FOUND_CODES or status == 404:
        return ErrorKind.not_found
    return ErrorKind.unknown


def error_from_backend(error: BackendError) -> ExpenseTrackerError:
    kind = classify_backend_error(error)
    message = error.message or error.details or "Unexpected backend error"
    if kind is ErrorKind.referential_integrity:
        return ReferentialIntegrityViolation(REAUTHENTICATE_MESSAGE, backend=error)
    if kind is ErrorKind.unauthenticated:
        return Unauthenticated(REAUTHENTICATE_MESSAGE, backend=error)
    if kind is ErrorKind.duplicate_name:
        return UniqueConstraintViolation(
            "A category with this name already exists. Please choose a different name.",
            backend=error,
        )
    if kind is ErrorKind.validation_failed:
        return ValidationFailed(
            "Invalid data provided. Please check your input and try again.",
            backend=error,
        )
    if kind is ErrorKind.not_found:
        return NotFound(message, backend=error)
    return UnknownBackendError(message, backend=error)


def backend_error_from_db(exc: DBAPIError) -> BackendError:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    diag = getattr(orig, "diag", None)
    details = getattr(diag, "message_detail", None) if diag is not None else None
    hint = getattr(diag, "message_hint", None) if diag is not None else None
    message = str(orig) if orig is not None else str(exc)
    return BackendError(code=code, message=message, details=details, hint=hint)
