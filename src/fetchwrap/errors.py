"""Error hierarchy for the fetchwrap client."""

from __future__ import annotations

from typing import Any

import httpx

STATUS_MARKER = "status"


class FetchWrapError(Exception):
    """Base class for all client errors."""


class ConstructionError(FetchWrapError, ValueError):
    """Raised when a request cannot be built (for example a relative URL without a base)."""


class AbortError(FetchWrapError):
    """Default reason attached to an aborted signal."""


class RequestTimeout(AbortError):
    """Reason attached to the signal when the pipeline timeout fires."""

    def __init__(self, timeout_ms: float) -> None:
        super().__init__(f"request timed out after {timeout_ms:g} ms")
        self.timeout_ms = timeout_ms


class ClientError(FetchWrapError):
    """Terminal failure of a call.

    ``request`` is always present. ``response``, ``status`` and ``body`` are only
    populated when a response was received; ``error`` holds the raw cause (or the
    ``"status"`` marker for classification failures).
    """

    def __init__(
        self,
        request: httpx.Request,
        response: httpx.Response | None = None,
        error: Any | None = None,
        status: int | None = None,
        body: Any | None = None,
    ) -> None:
        reason = response.reason_phrase if response is not None else ""
        super().__init__(reason or str(error))
        self.request = request
        self.response = response
        self.error = error
        self.status = status
        self.body = body


class NetworkError(ClientError):
    """Raised when the transport fails before any response exists."""


class ClientTimeoutError(NetworkError):
    """Raised when the internally armed timeout aborts the call."""


class StatusError(ClientError):
    """Raised when the final response fails status classification."""


class TypedModelValidationError(FetchWrapError):
    """Raised when typed request/response parsing fails validation."""

    def __init__(
        self,
        *,
        operation: str,
        model_name: str,
        errors: Any,
        boundary: str | None = None,
        status_code: int | None = None,
        raw_sample: Any | None = None,
    ) -> None:
        location = boundary or "boundary"
        super().__init__(f"{operation} {location} validation failed for {model_name}")
        self.operation = operation
        self.model_name = model_name
        self.errors = errors
        self.boundary = boundary
        self.status_code = status_code
        self.raw_sample = raw_sample


def build_client_error(
    request: httpx.Request,
    response: httpx.Response | None = None,
    error: Any | None = None,
    status: int | None = None,
    body: Any | None = None,
) -> ClientError:
    if isinstance(error, RequestTimeout):
        return ClientTimeoutError(request, response, error, status, body)
    if response is None:
        return NetworkError(request, None, error, None, None)
    if error == STATUS_MARKER:
        return StatusError(request, response, error, status, body)
    return ClientError(request, response, error, status, body)
