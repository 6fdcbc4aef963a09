"""Error types for the Freshdesk MCP server."""

from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed set of failure kinds a Freshdesk call can end in."""

    NETWORK = "NETWORK_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    PERMISSION = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    SERVER = "API_ERROR"


class FreshdeskError(Exception):
    """Base class for every normalized Freshdesk API failure."""

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.kind.value
        self.status_code = status_code
        self.field: str | None = None
        self.errors: list[dict[str, Any]] | None = None

    @property
    def retryable(self) -> bool:
        """Whether the client may transparently retry after this error."""
        if self.kind in (ErrorKind.NETWORK, ErrorKind.RATE_LIMIT):
            return True
        return self.status_code is not None and self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
        }
        if self.status_code is not None:
            result["statusCode"] = self.status_code
        if self.field is not None:
            result["field"] = self.field
        if self.errors is not None:
            result["errors"] = [
                {
                    "field": error.get("field"),
                    "message": error.get("message"),
                    "code": error.get("code"),
                }
                for error in self.errors
            ]
        return result


class NetworkError(FreshdeskError):
    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "Network error occurred") -> None:
        super().__init__(message)


class AuthenticationError(FreshdeskError):
    kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, status_code=401)


class PermissionDeniedError(FreshdeskError):
    kind = ErrorKind.PERMISSION

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message, status_code=403)


class NotFoundError(FreshdeskError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str | int | None = None, detail: str | None = None) -> None:
        if identifier:
            message = f"{resource} with id {identifier} not found"
        elif detail:
            message = f"{resource} not found: {detail}"
        else:
            message = f"{resource} not found"
        super().__init__(message, status_code=404)


class RateLimitError(FreshdeskError):
    """Raised for local window exhaustion and for remote 429 responses.

    ``retry_after`` is the suggested wait in whole seconds, when known.
    """

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.retry_after is not None:
            result["retryAfter"] = self.retry_after
        return result


class ValidationError(FreshdeskError):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None, status_code: int = 400) -> None:
        super().__init__(message, status_code=status_code)
        self.field = field


class ServerError(FreshdeskError):
    """Any failure not covered by a more specific kind (5xx and unclassified)."""

    kind = ErrorKind.SERVER


class ConfigurationError(ValueError):
    """Invalid or missing configuration, detected before any network call."""


class StartupError(RuntimeError):
    """The server could not reach the ready state."""


class ToolExecutionError(Exception):
    """Dispatch-level failure that is reported to the transport as a fault."""

    def __init__(self, message: str, tool_name: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolExecutionError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}", tool_name)


class ToolPermissionError(ToolExecutionError):
    def __init__(self, tool_name: str, missing: list[str]) -> None:
        super().__init__(
            f"Insufficient permissions for tool {tool_name}. Missing: {', '.join(missing)}",
            tool_name,
        )
        self.missing = missing


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _request_path(response: httpx.Response) -> str | None:
    # Responses built by hand (tests, replays) have no request attached.
    try:
        return response.request.url.path
    except RuntimeError:
        return None


def error_from_response(response: httpx.Response) -> FreshdeskError:
    """Map a non-2xx Freshdesk response onto the error taxonomy."""
    status = response.status_code
    body = _error_body(response)
    message = body.get("message") or body.get("description")

    if status == 401:
        return AuthenticationError(message or "Invalid API key")
    if status == 403:
        return PermissionDeniedError(message or "Access forbidden")
    if status == 404:
        return NotFoundError("Resource", detail=_request_path(response))
    if status == 429:
        return RateLimitError(
            message or "Rate limit exceeded",
            _parse_retry_after(response.headers.get("retry-after")),
        )
    if status in (400, 422):
        error = ValidationError(message or "Validation failed", body.get("field"), status_code=status)
        if isinstance(body.get("errors"), list):
            error.errors = body["errors"]
        return error

    error = ServerError(
        message or f"Request failed with status {status}",
        code=body.get("code") or ErrorKind.SERVER.value,
        status_code=status,
    )
    if isinstance(body.get("errors"), list):
        error.errors = body["errors"]
    return error
