# Error taxonomy shared by services and the HTTP layer

from typing import Any

from sqlalchemy.exc import IntegrityError

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
NOT_NULL_VIOLATION = "23502"


class AppError(Exception):
    """Base error; carries an HTTP status and a message catalog key"""

    status_code = 500
    message_key = "serverError"

    def __init__(
            self,
            message_key: str | None = None,
            errors: list[dict[str, Any]] | None = None,
            detail: str | None = None,
            **params: Any
    ):
        self.message_key = message_key or self.message_key
        self.errors = errors
        self.detail = detail
        self.params = params
        super().__init__(detail or self.message_key)


class ValidationError(AppError):
    status_code = 400
    message_key = "validationError"


class UnauthorizedError(AppError):
    status_code = 401
    message_key = "unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    message_key = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    message_key = "notFound"


class ConflictError(AppError):
    status_code = 409
    message_key = "alreadyExists"


class ServerError(AppError):
    status_code = 500
    message_key = "serverError"


def field_error(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_integrity_error(exc: IntegrityError) -> AppError:
    """Map a storage constraint violation onto the error taxonomy"""
    code = _sqlstate(exc)
    text = str(exc.orig).lower()

    if code == UNIQUE_VIOLATION or "unique constraint" in text:
        return ConflictError(detail=str(exc.orig))
    if code == FOREIGN_KEY_VIOLATION or "foreign key constraint" in text:
        return ValidationError("referenceError", detail=str(exc.orig))
    if code in (CHECK_VIOLATION, NOT_NULL_VIOLATION) or "check constraint" in text or "not null constraint" in text:
        return ValidationError(detail=str(exc.orig))
    return ServerError(detail=str(exc.orig))
