from __future__ import annotations


class AppError(Exception):
    """Base application error.

    Subclasses carry the transport mapping so the HTTP and WebSocket layers
    never need to know which component raised.
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"


class UnauthenticatedError(AppError):
    status_code = 401
    code = "unauthenticated"
