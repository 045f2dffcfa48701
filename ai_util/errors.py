from __future__ import annotations


class CoachError(RuntimeError):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)

    @property
    def client_message(self) -> str:
        return str(self)


class ValidationError(CoachError):
    status_code = 400
    public_message = "Invalid request"


class MissingParameter(ValidationError):
    public_message = "Missing required parameters"

    def __init__(self, missing: list[str] | None = None) -> None:
        self.missing = list(missing or [])
        message = self.public_message
        if self.missing:
            message = f"{message}: {', '.join(self.missing)}"
        super().__init__(message)


class UnknownTemplate(ValidationError):
    public_message = "Unknown template"


class ConfigurationError(CoachError):
    """Raised when a credential or setting is missing. Never echoed to clients."""

    status_code = 500

    @property
    def client_message(self) -> str:
        return "Server is not configured to reach the model API"


class UpstreamError(CoachError):
    status_code = 500
    public_message = "Error from Gemini API"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code:
            self.status_code = status_code


class UpstreamTimeout(UpstreamError):
    status_code = 504
    public_message = "Request timeout"


class EmptyModelResponse(UpstreamError):
    status_code = 502
    public_message = "Invalid response from Gemini API"
