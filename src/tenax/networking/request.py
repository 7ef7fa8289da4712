"""Request Builder: URL joining and composable request options.

Options are pure transforms over an immutable ``RequestDraft``. They are applied
left-to-right after the client's default headers, so a later option wins when
two of them set the same header (header names compare case-insensitively).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests
from requests.structures import CaseInsensitiveDict

from .errors import HttpClientError, InvalidURLError, RequestBuildError

JSON_CONTENT_TYPE = "application/json"

Header = tuple[str, str]
QueryParam = tuple[str, str]

_ABSOLUTE_URL = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


@dataclass(frozen=True)
class RequestDraft:
    """A request under construction."""

    method: str
    url: str
    headers: tuple[Header, ...] = ()
    params: tuple[QueryParam, ...] = ()
    body: bytes | None = None

    def with_header(self, name: str, value: str) -> RequestDraft:
        lowered = name.lower()
        kept = tuple(h for h in self.headers if h[0].lower() != lowered)
        return replace(self, headers=kept + ((name, value),))

    def with_params(self, params: Iterable[QueryParam]) -> RequestDraft:
        return replace(self, params=self.params + tuple(params))

    def with_body(
        self, body: bytes, content_type: str | None = None
    ) -> RequestDraft:
        draft = replace(self, body=body)
        if content_type is not None:
            draft = draft.with_header("Content-Type", content_type)
        return draft

    def header_map(self) -> CaseInsensitiveDict[str]:
        merged: CaseInsensitiveDict[str] = CaseInsensitiveDict()
        for name, value in self.headers:
            merged[name] = value
        return merged

    def prepare(
        self, session: requests.Session | None = None
    ) -> requests.PreparedRequest:
        """Finalize into a ``requests.PreparedRequest``.

        With a session, its headers, cookies and auth are merged in the same
        way ``Session.request`` does; the draft's own headers win.
        """
        request = requests.Request(
            method=self.method,
            url=self.url,
            headers=dict(self.header_map()),
            params=list(self.params),
            data=self.body,
        )
        try:
            if session is not None:
                return session.prepare_request(request)
            return request.prepare()
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ) as exc:
            raise InvalidURLError(f"invalid URL: {exc}") from exc
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise RequestBuildError(f"failed to create request: {exc}") from exc


RequestOption = Callable[[RequestDraft], RequestDraft]


def _clean_path(path: str) -> str:
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return "/" + "/".join(parts)


def join_url(base_url: str, path: str) -> str:
    """Join ``path`` onto ``base_url`` with normalized separators.

    Duplicate slashes collapse and dot segments resolve; a trailing slash on
    ``path`` is kept. A query string on either side is preserved.

    Raises:
        InvalidURLError: if the base is not an absolute http(s) URL or the
            path is itself an absolute URL.
    """
    try:
        base = urlsplit(base_url)
        base.port  # validates the port component
    except ValueError as exc:
        raise InvalidURLError(f"invalid URL: {exc}") from exc

    if base.scheme not in ("http", "https") or not base.hostname:
        raise InvalidURLError(
            f"invalid URL: base {base_url!r} must be an absolute http(s) URL"
        )
    if _ABSOLUTE_URL.match(path):
        raise InvalidURLError(f"invalid URL: path {path!r} must be relative")

    # A leading "//" is a doubled separator here, not a network location.
    rest, _, fragment = path.partition("#")
    ref_path, _, ref_query = rest.partition("?")

    joined = _clean_path(f"{base.path}/{ref_path}")
    trailing = ref_path.endswith("/") or (
        not ref_path and base.path.endswith("/")
    )
    if trailing and joined != "/":
        joined += "/"

    query = "&".join(q for q in (base.query, ref_query) if q)
    return urlunsplit(
        (base.scheme, base.netloc, joined, query, fragment or base.fragment)
    )


def build_request(
    base_url: str,
    method: str,
    path: str,
    *,
    default_headers: Mapping[str, str] | None = None,
    options: Sequence[RequestOption] = (),
    session: requests.Session | None = None,
) -> requests.PreparedRequest:
    """Assemble a prepared request from the base URL, path and options.

    When ``session`` is given, its headers, cookies and auth are merged into
    the request underneath the defaults and options.

    Raises:
        InvalidURLError: if the URL cannot be built.
        RequestBuildError: if an option fails.
    """
    draft = RequestDraft(method=method.upper(), url=join_url(base_url, path))
    for name, value in (default_headers or {}).items():
        draft = draft.with_header(name, value)

    for option in options:
        try:
            draft = option(draft)
        except HttpClientError:
            raise
        except Exception as exc:
            raise RequestBuildError(f"request option failed: {exc}") from exc
        if not isinstance(draft, RequestDraft):
            raise RequestBuildError(
                f"request option returned {type(draft).__name__}, "
                "expected RequestDraft"
            )
    return draft.prepare(session)


def with_query_params(
    params: Mapping[str, str | Sequence[str]],
) -> RequestOption:
    """Append query parameters; every value of a repeated key is kept."""
    pairs: list[QueryParam] = []
    for key, values in params.items():
        if isinstance(values, (str, bytes)):
            values = [values]
        for value in values:
            pairs.append((key, value))

    def option(draft: RequestDraft) -> RequestDraft:
        return draft.with_params(pairs)

    return option


def with_json_body(body: Any) -> RequestOption:
    """Send ``body`` as compact JSON with an ``application/json`` content type.

    A ``None`` body leaves the request untouched.
    """

    def option(draft: RequestDraft) -> RequestDraft:
        if body is None:
            return draft
        try:
            encoded = json.dumps(
                body, separators=(",", ":"), ensure_ascii=False, allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise RequestBuildError(
                f"failed to marshal request body: {exc}"
            ) from exc
        return draft.with_body(encoded, JSON_CONTENT_TYPE)

    return option


def with_body(
    data: bytes | str, content_type: str | None = None
) -> RequestOption:
    """Send a raw body, optionally setting its content type."""
    payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def option(draft: RequestDraft) -> RequestDraft:
        return draft.with_body(payload, content_type)

    return option


def with_headers(headers: Mapping[str, str]) -> RequestOption:
    """Set headers, replacing any earlier value of the same name."""
    items = [(str(k), str(v)) for k, v in headers.items()]

    def option(draft: RequestDraft) -> RequestDraft:
        for name, value in items:
            draft = draft.with_header(name, value)
        return draft

    return option


def with_header(name: str, value: str) -> RequestOption:
    return with_headers({name: value})
