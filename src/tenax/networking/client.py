"""Synchronous retrying HTTP client for the tenax networking layer.

``HttpClient`` turns one logical request into exactly one ``Result``. Behind a
verb method it runs a sequence of physical attempts: build the request, send
it through the shared transport, read the body, classify the outcome, and on a
retryable failure wait out the next backoff interval before trying again.
Permanent failures, backoff exhaustion and cancellation end the loop.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping

import requests

from .backoff import STOP, bind_context
from .classify import (
    Outcome,
    PermanentFailure,
    RetryableFailure,
    Success,
    classify,
)
from .config import HttpClientConfig
from .context import CallContext
from .errors import (
    CanceledError,
    HttpClientError,
    RequestTimeoutError,
    RetryExhaustedError,
    TransportError,
)
from .request import RequestOption, build_request
from .transport import Transport, abort_response, create_session
from .types import Err, Ok, Result

logger = logging.getLogger(__name__)

Timeout = float | tuple[float, float] | None
RetryHook = Callable[[HttpClientError, float], None]

# urllib3 rejects zero timeouts; an expired deadline is caught before sending.
_MIN_TIMEOUT_SECONDS = 0.001


def log_retry(error: HttpClientError, wait_seconds: float) -> None:
    """Retry hook that reports every retry decision to the module logger."""
    logger.info(
        "retrying in %.3fs after %s: %s",
        wait_seconds,
        type(error).__name__,
        error,
    )


class HttpClient:
    """Retrying HTTP client (sync).

    All methods return a Result holding either the response body or the
    terminal error, plus request metadata. The transport is shared by every
    call and may be any object with a ``requests.Session``-compatible
    ``send``; backoff state is created per call from the configured policy.
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        *,
        transport: Transport | None = None,
        on_retry: RetryHook | None = None,
    ) -> None:
        """Create a new HttpClient.

        Args:
            config: Base URL, default headers, timeouts and backoff policy.
            transport: Shared transport; a pooled ``requests.Session`` is
                created (and owned) when omitted.
            on_retry: Optional hook called with the error and the chosen wait
                before every retry. Exceptions it raises are logged and
                ignored.
        """
        self._config = config or HttpClientConfig()
        self._owns_transport = transport is None
        self._transport: Transport = (
            transport if transport is not None else create_session()
        )
        self._on_retry = on_retry

        headers: dict[str, str] = {}
        if self._config.user_agent:
            headers["User-Agent"] = self._config.user_agent
        headers.update(self._config.default_headers)
        self._default_headers = MappingProxyType(headers)

    @property
    def config(self) -> HttpClientConfig:
        return self._config

    def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            close = getattr(self._transport, "close", None)
            if callable(close):
                close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get_timeout(self, override: float | None) -> Timeout:
        """Resolve timeout preference."""
        if override is not None:
            if override <= 0:
                raise ValueError("timeout override must be > 0 when provided")
            return override
        if (
            self._config.connect_timeout_seconds is not None
            and self._config.read_timeout_seconds is not None
        ):
            return (
                self._config.connect_timeout_seconds,
                self._config.read_timeout_seconds,
            )
        return self._config.timeout_seconds

    @staticmethod
    def _bound_timeout(timeout: Timeout, context: CallContext) -> Timeout:
        """Clamp the transport timeout to the context's remaining deadline."""
        remaining = context.remaining()
        if remaining is None:
            return timeout
        remaining = max(remaining, _MIN_TIMEOUT_SECONDS)
        if timeout is None:
            return remaining
        if isinstance(timeout, tuple):
            return (min(timeout[0], remaining), min(timeout[1], remaining))
        return min(timeout, remaining)

    def _build_meta(
        self,
        method: str,
        request_url: str,
        response: requests.Response | None,
        labels: Mapping[str, Any] | None,
        attempts: int,
        timeout: Timeout,
        final_error: str | None = None,
    ) -> dict[str, Any]:
        """Construct metadata dictionary from response and caller labels."""
        meta: dict[str, Any] = {}
        meta["method"] = method
        meta["url"] = request_url
        meta["attempts"] = attempts
        meta["timeout_s"] = timeout
        if labels:
            labels_dict = dict(labels)
            meta["labels"] = labels_dict
            for key, value in labels_dict.items():
                meta.setdefault(key, value)

        if response is not None:
            meta["status"] = response.status_code
            meta["status_code"] = response.status_code
            meta["url"] = response.url or request_url
            meta["reason"] = response.reason
            try:
                meta["elapsed_s"] = response.elapsed.total_seconds()
            except AttributeError:
                pass  # In case elapsed is not available or mocked
        if final_error is not None:
            meta["final_error"] = final_error

        return meta

    def _send(
        self, prepared: requests.PreparedRequest, timeout: Timeout
    ) -> requests.Response:
        """Send one request, mapping transport failures to TransportError."""
        try:
            return self._transport.send(
                prepared,
                timeout=timeout,
                verify=self._config.verify_tls,
                allow_redirects=self._config.allow_redirects,
                stream=True,
            )
        except requests.exceptions.Timeout as exc:
            raise RequestTimeoutError(f"request failed: {exc}") from exc
        except (requests.exceptions.RequestException, OSError) as exc:
            raise TransportError(f"request failed: {exc}") from exc

    @staticmethod
    def _read_body(response: requests.Response, context: CallContext) -> bytes:
        """Read the whole body; a cancel aborts the read in progress."""
        remove = context.add_done_callback(lambda: abort_response(response))
        try:
            return response.content
        except (requests.exceptions.RequestException, OSError) as exc:
            if context.done:
                raise TransportError(
                    f"response read aborted: {context.reason}"
                ) from exc
            raise TransportError(f"failed to read response: {exc}") from exc
        finally:
            remove()
            response.close()

    def _attempt(
        self,
        method: str,
        path: str,
        options: tuple[RequestOption, ...],
        timeout: Timeout,
        context: CallContext,
    ) -> tuple[Outcome, requests.Response | None, str]:
        """Run one physical attempt and classify it."""
        session = (
            self._transport
            if isinstance(self._transport, requests.Session)
            else None
        )
        try:
            prepared = build_request(
                self._config.base_url,
                method,
                path,
                default_headers=self._default_headers,
                options=options,
                session=session,
            )
        except HttpClientError as exc:
            return classify(exc), None, path

        url = prepared.url or path
        response: requests.Response | None = None
        try:
            response = self._send(prepared, self._bound_timeout(timeout, context))
            body = self._read_body(response, context)
        except TransportError as exc:
            return classify(exc), response, url

        outcome = classify(
            None, response.status_code, body, self._config.permanent_statuses
        )
        return outcome, response, url

    def _notify_retry(self, error: HttpClientError, wait: float) -> None:
        if self._on_retry is None:
            return
        try:
            self._on_retry(error, wait)
        except Exception:
            logger.exception("on_retry hook raised; continuing with retry")

    def request(
        self,
        method: str,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Execute a request with retries and normalized metadata.

        Args:
            method: HTTP method.
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right.
            context: Cancellation/deadline signal for this call.
            timeout: Per-attempt timeout override in seconds.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Ok with the exact response body on a 2xx status, otherwise Err
            with a ClientStatusError, InvalidURLError, RequestBuildError,
            RetryExhaustedError or CanceledError.
        """
        method = method.upper()
        context = context or CallContext.background()
        resolved_timeout = self._get_timeout(timeout)
        cursor = bind_context(self._config.backoff.start(), context)

        attempts = 0
        url = path
        response: requests.Response | None = None
        last_error: HttpClientError | None = None

        def fail(error: HttpClientError) -> Err[Exception]:
            return Err(
                error,
                meta=self._build_meta(
                    method=method,
                    request_url=url,
                    response=response,
                    labels=labels,
                    attempts=attempts,
                    timeout=resolved_timeout,
                    final_error=type(error).__name__,
                ),
            )

        while True:
            if context.done:
                return fail(
                    CanceledError(context.reason or "canceled", last_error)
                )

            attempts += 1
            logger.debug("%s %s attempt %d", method, path, attempts)
            try:
                outcome, response, url = self._attempt(
                    method, path, options, resolved_timeout, context
                )
            except Exception as exc:  # pragma: no cover - unexpected transport failure
                return fail(HttpClientError(str(exc)))

            if context.done:
                return fail(CanceledError(context.reason or "canceled", last_error))

            if isinstance(outcome, Success):
                return Ok(
                    outcome.body,
                    meta=self._build_meta(
                        method=method,
                        request_url=url,
                        response=response,
                        labels=labels,
                        attempts=attempts,
                        timeout=resolved_timeout,
                    ),
                )

            if isinstance(outcome, PermanentFailure):
                return fail(outcome.error)

            assert isinstance(outcome, RetryableFailure)
            last_error = outcome.error
            wait = cursor.next_wait()
            if wait is STOP:
                if context.done:
                    return fail(
                        CanceledError(context.reason or "canceled", last_error)
                    )
                logger.warning(
                    "%s %s giving up after %d attempt(s): %s",
                    method,
                    url,
                    attempts,
                    last_error,
                )
                return fail(RetryExhaustedError(last_error, attempts))

            logger.debug(
                "%s %s failed (%s), retrying in %.3fs",
                method,
                url,
                last_error,
                wait,
            )
            self._notify_retry(last_error, wait)
            if context.wait(wait):
                return fail(
                    CanceledError(context.reason or "canceled", last_error)
                )

    def get(
        self,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Perform an HTTP GET request.

        Args:
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right.
            context: Optional cancellation/deadline signal for this call.
            timeout: Override timeout in seconds for each attempt.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Result containing response bytes on success, or an error on failure.
        """
        return self.request(
            "GET", path, *options, context=context, timeout=timeout, labels=labels
        )

    def post(
        self,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Perform an HTTP POST request.

        Args:
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right, e.g.
                ``with_json_body`` for the payload.
            context: Optional cancellation/deadline signal for this call.
            timeout: Override timeout in seconds for each attempt.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Result containing response bytes on success, or an error on failure.
        """
        return self.request(
            "POST", path, *options, context=context, timeout=timeout, labels=labels
        )

    def put(
        self,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Perform an HTTP PUT request.

        Args:
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right, e.g.
                ``with_json_body`` for the payload.
            context: Optional cancellation/deadline signal for this call.
            timeout: Override timeout in seconds for each attempt.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Result containing response bytes on success, or an error on failure.
        """
        return self.request(
            "PUT", path, *options, context=context, timeout=timeout, labels=labels
        )

    def patch(
        self,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Perform an HTTP PATCH request.

        Args:
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right, e.g.
                ``with_json_body`` for the payload.
            context: Optional cancellation/deadline signal for this call.
            timeout: Override timeout in seconds for each attempt.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Result containing response bytes on success, or an error on failure.
        """
        return self.request(
            "PATCH", path, *options, context=context, timeout=timeout, labels=labels
        )

    def delete(
        self,
        path: str,
        *options: RequestOption,
        context: CallContext | None = None,
        timeout: float | None = None,
        labels: Mapping[str, Any] | None = None,
    ) -> Result[bytes, Exception]:
        """Perform an HTTP DELETE request.

        Args:
            path: Path joined onto the configured base URL.
            *options: Request options applied left-to-right.
            context: Optional cancellation/deadline signal for this call.
            timeout: Override timeout in seconds for each attempt.
            labels: Optional caller labels copied into the metadata.

        Returns:
            Result containing response bytes on success, or an error on failure.
        """
        return self.request(
            "DELETE", path, *options, context=context, timeout=timeout, labels=labels
        )
