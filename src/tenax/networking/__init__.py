"""Public surface of the tenax networking layer."""

from .backoff import (
    STOP,
    BackoffCursor,
    BackoffPolicy,
    ConstantBackoff,
    ExponentialBackoff,
    MaxRetries,
    StopBackoff,
    ZeroBackoff,
    bind_context,
    default_backoff,
)
from .client import HttpClient, RetryHook, log_retry
from .config import HttpClientConfig
from .context import CallContext
from .errors import (
    CanceledError,
    ClientStatusError,
    HttpClientError,
    HttpStatusError,
    InvalidURLError,
    RequestBuildError,
    RequestTimeoutError,
    RetryExhaustedError,
    ServerStatusError,
    TransportError,
)
from .request import (
    RequestDraft,
    RequestOption,
    build_request,
    join_url,
    with_body,
    with_header,
    with_headers,
    with_json_body,
    with_query_params,
)
from .transport import Transport, create_session
from .types import Err, Ok, Result

__all__ = [
    "STOP",
    "BackoffCursor",
    "BackoffPolicy",
    "CallContext",
    "CanceledError",
    "ClientStatusError",
    "ConstantBackoff",
    "Err",
    "ExponentialBackoff",
    "HttpClient",
    "HttpClientConfig",
    "HttpClientError",
    "HttpStatusError",
    "InvalidURLError",
    "MaxRetries",
    "Ok",
    "RequestBuildError",
    "RequestDraft",
    "RequestOption",
    "RequestTimeoutError",
    "Result",
    "RetryExhaustedError",
    "RetryHook",
    "ServerStatusError",
    "StopBackoff",
    "Transport",
    "TransportError",
    "ZeroBackoff",
    "bind_context",
    "build_request",
    "create_session",
    "default_backoff",
    "join_url",
    "log_retry",
    "with_body",
    "with_header",
    "with_headers",
    "with_json_body",
    "with_query_params",
]
