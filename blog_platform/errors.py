"""
Domain error taxonomy.

Services raise these; ``main`` installs one exception handler that renders
every ``AppError`` as ``{"success": false, "code": ..., "message": ...}``
with the matching HTTP status.
"""


class AppError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Not authorized to access this route"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Not authorized to perform this action"


class SelfDeletionError(AppError):
    """An admin tried to deactivate their own account."""

    status_code = 400
    code = "self_deletion"
    default_message = "You cannot delete your own account"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class AlreadyDeleted(Conflict):
    code = "already_deleted"
    default_message = "Resource has already been deleted"


class UpstreamUnavailable(AppError):
    status_code = 503
    code = "upstream_unavailable"
    default_message = "Image upload service not configured. Please contact administrator."


class InternalError(AppError):
    pass
