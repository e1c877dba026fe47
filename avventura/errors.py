"""Error taxonomy.

Every error carries the HTTP status the API layer answers with, so routes
can let them propagate and a single handler renders
{"success": false, "error": <message>}.
"""


class AvventuraError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(AvventuraError):
    """Unknown or inactive story slug."""

    status_code = 404


class ValidationError(AvventuraError):
    """Malformed request body, invalid slug/owner format, broken history."""

    status_code = 400


class OwnershipError(AvventuraError):
    """Write to a story owned by a different address."""

    status_code = 403


class ConfigurationError(AvventuraError):
    """Missing upstream credential or unusable configuration."""

    status_code = 500


class LLMError(AvventuraError):
    """Raised by the completion client for connection and protocol failures."""


class UpstreamError(LLMError):
    """The model endpoint answered with a non-success status or was unreachable."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedUpstreamResponse(LLMError):
    """Success status, but the body lacks the completion text."""


class ParseError(AvventuraError):
    """Model text is not valid JSON or violates the three-option contract."""
