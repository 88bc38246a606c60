"""Error taxonomy shared by every feature.

Each error carries the HTTP status it is rendered with. The handlers in
``main.create_app`` turn them into ``{"error": message}`` bodies.
"""


class FixMyCityError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(FixMyCityError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(FixMyCityError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(FixMyCityError):
    # Also used for records that exist but fall outside the caller's scope
    status_code = 404
    default_message = "Not found"


class ValidationFailed(FixMyCityError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(FixMyCityError):
    status_code = 409
    default_message = "Resource already exists"


class Upstream(FixMyCityError):
    status_code = 500
    default_message = "Upstream service failed"


class InvalidToken(Exception):
    """Raised by the token service; never rendered to clients as-is."""


def format_validation_errors(errors) -> str:
    """Collapse pydantic/FastAPI error dicts into one comma-separated message."""
    messages = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return ", ".join(messages)
