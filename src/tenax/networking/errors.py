"""Error taxonomy for the tenax networking layer.

Request failures are returned inside ``Err`` rather than raised; callers that
prefer exceptions can use ``Result.unwrap()``. Each class documents whether the
executor treats it as permanent or retryable.
"""

from __future__ import annotations


class HttpClientError(Exception):
    """Base class for every failure produced by HttpClient."""


class InvalidURLError(HttpClientError):
    """Base URL and path do not join into a valid absolute URL (permanent)."""


class RequestBuildError(HttpClientError):
    """A request option failed, e.g. the JSON body is not serializable (permanent)."""


class TransportError(HttpClientError):
    """Connection, DNS, TLS or body-read failure below HTTP semantics (retryable)."""


class RequestTimeoutError(TransportError):
    """The transport timed out connecting or reading (retryable)."""


class HttpStatusError(HttpClientError):
    """A response arrived with a non-success status code."""

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"request failed with status {status_code}: {text}")


class ClientStatusError(HttpStatusError):
    """4xx response; resending the same request will not help (permanent)."""


class ServerStatusError(HttpStatusError):
    """5xx or otherwise unexpected status (retryable)."""


class RetryExhaustedError(HttpClientError):
    """The backoff policy stopped before a retryable failure cleared."""

    def __init__(self, last_error: HttpClientError, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"giving up after {attempts} attempt(s): {last_error}"
        )


class CanceledError(HttpClientError):
    """The call's context was canceled or its deadline passed."""

    def __init__(
        self,
        reason: str = "canceled",
        last_error: HttpClientError | None = None,
    ) -> None:
        self.reason = reason
        self.last_error = last_error
        message = f"request {reason}"
        if last_error is not None:
            message = f"{message} (last error: {last_error})"
        super().__init__(message)
