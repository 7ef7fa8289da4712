"""Configuration models for the HttpClient interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .backoff import BackoffPolicy, default_backoff
from .classify import DEFAULT_PERMANENT_STATUSES, SUCCESS_STATUSES

DEFAULT_TIMEOUT_SECONDS = 30.0


def _default_headers() -> Mapping[str, str]:
    """Return immutable empty default headers mapping."""

    return MappingProxyType({})


@dataclass(frozen=True)
class HttpClientConfig:
    """Configuration for HttpClient behavior.

    The backoff policy is a prototype: each logical call starts its own cursor
    from it, so one config can serve concurrent calls.
    """

    base_url: str = ""
    user_agent: str | None = None
    default_headers: Mapping[str, str] = field(default_factory=_default_headers)
    verify_tls: bool = True
    allow_redirects: bool = True
    connect_timeout_seconds: float | None = None
    read_timeout_seconds: float | None = None
    timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS
    backoff: BackoffPolicy = field(default_factory=default_backoff)
    permanent_statuses: tuple[range, ...] = DEFAULT_PERMANENT_STATUSES

    def __post_init__(self) -> None:
        has_connect_timeout = self.connect_timeout_seconds is not None
        has_read_timeout = self.read_timeout_seconds is not None
        if has_connect_timeout != has_read_timeout:
            raise ValueError(
                "connect_timeout_seconds and read_timeout_seconds "
                "must be set together"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0 when provided")
        if (
            self.connect_timeout_seconds is not None
            and self.connect_timeout_seconds <= 0
        ):
            raise ValueError(
                "connect_timeout_seconds must be > 0 when provided"
            )
        if (
            self.read_timeout_seconds is not None
            and self.read_timeout_seconds <= 0
        ):
            raise ValueError("read_timeout_seconds must be > 0 when provided")
        if not callable(getattr(self.backoff, "start", None)):
            raise ValueError("backoff must provide a start() method")

        statuses = tuple(self.permanent_statuses)
        for codes in statuses:
            if not isinstance(codes, range):
                raise ValueError("permanent_statuses must contain ranges")
            if any(code in SUCCESS_STATUSES for code in codes):
                raise ValueError("permanent_statuses cannot include 2xx codes")
        object.__setattr__(self, "permanent_statuses", statuses)

        # Freeze copied headers to avoid post-init mutation side effects.
        object.__setattr__(
            self,
            "default_headers",
            MappingProxyType(dict(self.default_headers)),
        )
