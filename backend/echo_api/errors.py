"""
Domain errors raised by stores, services and routes.

Every error maps to one HTTP status. The exception handlers in echo_api.main
render them as the standard error envelope:

    {"success": false, "message": "...", "error": "..."}

`error` carries internal detail and is only filled in development.
"""

from uuid import UUID


class EchoError(Exception):
    """Base class for errors with a client-facing message and HTTP status."""

    status_code: int = 500
    default_message: str = "An internal error occurred."

    def __init__(
        self,
        message: str | None = None,
        *,
        conversation_id: UUID | str | None = None,
        detail: str | None = None,
    ):
        self.message = message or self.default_message
        self.conversation_id = conversation_id
        self.detail = detail
        super().__init__(self.message)


class BadRequest(EchoError):
    status_code = 400
    default_message = "Invalid request."


class Unauthorized(EchoError):
    status_code = 401
    default_message = "Not authorized."


class Forbidden(EchoError):
    status_code = 403
    default_message = "You do not have permission to access this resource."


class NotFound(EchoError):
    status_code = 404
    default_message = "Resource not found."


class Gone(EchoError):
    status_code = 410
    default_message = "This resource has expired."


class RateLimited(EchoError):
    status_code = 429
    default_message = "Too many requests, please try again later."


class Internal(EchoError):
    status_code = 500


class SlugExhausted(EchoError):
    """Raised when no free share slug was found within the attempt bound."""

    status_code = 500
    default_message = "Failed to generate a unique share ID."


class ModelUnavailable(EchoError):
    """Upstream language-model call failed (network, non-2xx, malformed payload)."""

    status_code = 502
    default_message = "Error generating AI response."
