"""Outcome classification for a single physical attempt.

The default table is explicit:

======================  ===========================================
status                  outcome
======================  ===========================================
200-299                 Success (body returned unmodified)
400-499                 PermanentFailure (``ClientStatusError``)
anything else           RetryableFailure (``ServerStatusError``)
======================  ===========================================

"Anything else" includes 1xx/3xx and codes >= 600. Redirects are followed by
the transport by default, so a 3xx only reaches the classifier when redirect
following is off or exhausted. Callers that want 3xx to be final can add
``range(300, 400)`` to ``HttpClientConfig.permanent_statuses``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from .errors import (
    ClientStatusError,
    HttpClientError,
    InvalidURLError,
    RequestBuildError,
    ServerStatusError,
)

SUCCESS_STATUSES = range(200, 300)
DEFAULT_PERMANENT_STATUSES: tuple[range, ...] = (range(400, 500),)


@dataclass(frozen=True)
class Success:
    body: bytes


@dataclass(frozen=True)
class RetryableFailure:
    error: HttpClientError


@dataclass(frozen=True)
class PermanentFailure:
    error: HttpClientError


Outcome = Union[Success, RetryableFailure, PermanentFailure]


def classify_error(error: HttpClientError) -> Outcome:
    """Classify a failure raised before a status code was available."""
    if isinstance(error, (InvalidURLError, RequestBuildError)):
        return PermanentFailure(error)
    return RetryableFailure(error)


def classify_status(
    status_code: int,
    body: bytes,
    permanent_statuses: Iterable[range] = DEFAULT_PERMANENT_STATUSES,
) -> Outcome:
    """Classify a complete response by its status code."""
    if status_code in SUCCESS_STATUSES:
        return Success(body)
    if any(status_code in codes for codes in permanent_statuses):
        return PermanentFailure(ClientStatusError(status_code, body))
    return RetryableFailure(ServerStatusError(status_code, body))


def classify(
    error: HttpClientError | None,
    status_code: int | None = None,
    body: bytes = b"",
    permanent_statuses: Iterable[range] = DEFAULT_PERMANENT_STATUSES,
) -> Outcome:
    """Classify one attempt from its transport error or its response."""
    if error is not None:
        return classify_error(error)
    if status_code is None:
        raise ValueError("status_code is required when no error occurred")
    return classify_status(status_code, body, permanent_statuses)
