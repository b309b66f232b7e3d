"""Domain errors raised by the auth gateway and task store.

Each error carries the HTTP status the API answers with; the app registers a
single exception handler for :class:`TaskflowError`.
"""


class TaskflowError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(TaskflowError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(TaskflowError):
    status_code = 401
    default_message = "Access token required"


class Forbidden(TaskflowError):
    status_code = 403
    default_message = "Invalid or expired token"


class NotFound(TaskflowError):
    status_code = 404
    default_message = "Not found"


class Conflict(TaskflowError):
    status_code = 409
    default_message = "Conflict"


class Unavailable(TaskflowError):
    """Storage or a downstream service could not be reached."""

    status_code = 500
