import json
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

from tenax.networking.errors import InvalidURLError, RequestBuildError
from tenax.networking.request import (
    RequestDraft,
    build_request,
    join_url,
    with_body,
    with_header,
    with_headers,
    with_json_body,
    with_query_params,
)

BASE = "http://api.example.com"


@pytest.mark.parametrize(
    ("base", "path", "expected"),
    [
        (BASE, "/test", f"{BASE}/test"),
        (BASE, "test", f"{BASE}/test"),
        (f"{BASE}/", "/test", f"{BASE}/test"),
        (f"{BASE}/v1", "users/7", f"{BASE}/v1/users/7"),
        (f"{BASE}/v1/", "//users//7", f"{BASE}/v1/users/7"),
        (f"{BASE}/v1", "//users", f"{BASE}/v1/users"),
        (f"{BASE}/v1", "//", f"{BASE}/v1/"),
        (f"{BASE}/v1", "//other.example.com/x", f"{BASE}/v1/other.example.com/x"),
        (f"{BASE}/v1", "users/", f"{BASE}/v1/users/"),
        (f"{BASE}/v1/a", "../b", f"{BASE}/v1/b"),
        (f"{BASE}/v1", "./x/./y", f"{BASE}/v1/x/y"),
        (f"{BASE}:8080/v1", "x", f"{BASE}:8080/v1/x"),
        (f"{BASE}/v1", "search?q=a", f"{BASE}/v1/search?q=a"),
        (f"{BASE}/v1?key=k", "search?q=a", f"{BASE}/v1/search?key=k&q=a"),
        (f"{BASE}/v1", "docs#intro", f"{BASE}/v1/docs#intro"),
    ],
)
def test_join_url(base, path, expected):
    assert join_url(base, path) == expected


@pytest.mark.parametrize("base", [BASE, f"{BASE}/", f"{BASE}/root", f"{BASE}/root/"])
@pytest.mark.parametrize(
    ("first", "second"),
    [
        ("a", "b"),
        ("/a/", "/b"),
        ("a/", "b/c"),
        ("/a", "b"),
        ("a", "//b"),
        ("//a", "b"),
        ("a", "//"),
    ],
)
def test_join_url_is_associative_over_separators(base, first, second):
    nested = join_url(join_url(base, first), second)
    flat = join_url(base, f"{first}/{second}")

    assert nested == flat


@pytest.mark.parametrize(
    "base",
    ["", "not a url", "ftp://files.example.com", "http://", "http://[::1"],
)
def test_join_url_rejects_invalid_base(base):
    with pytest.raises(InvalidURLError):
        join_url(base, "/test")


def test_join_url_rejects_invalid_port():
    with pytest.raises(InvalidURLError):
        join_url("http://api.example.com:notaport", "/test")


def test_join_url_rejects_absolute_path():
    with pytest.raises(InvalidURLError):
        join_url(BASE, "https://elsewhere.example.com/x")


def test_build_request_applies_default_headers_then_options():
    request = build_request(
        BASE,
        "get",
        "/test",
        default_headers={"Accept": "text/plain", "X-Trace": "default"},
        options=[with_headers({"accept": "application/json"})],
    )

    assert request.method == "GET"
    assert request.url == f"{BASE}/test"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["X-Trace"] == "default"


def test_build_request_merges_session_state_beneath_headers():
    session = requests.Session()
    session.headers["X-Session"] = "s1"
    session.headers["Accept"] = "text/html"
    session.cookies.set("sid", "abc")

    request = build_request(
        BASE,
        "GET",
        "/test",
        default_headers={"Accept": "text/plain"},
        session=session,
    )

    assert request.headers["X-Session"] == "s1"
    assert request.headers["Accept"] == "text/plain"
    assert request.headers["Cookie"] == "sid=abc"


def test_later_header_option_wins():
    request = build_request(
        BASE,
        "GET",
        "/",
        options=[with_header("X-Mode", "a"), with_header("x-mode", "b")],
    )

    assert request.headers["X-Mode"] == "b"


def test_query_params_keep_every_value_in_order():
    request = build_request(
        BASE,
        "GET",
        "/search?page=1",
        options=[
            with_query_params({"tag": ["b", "a"], "page": "2"}),
            with_query_params({"tag": ["a"]}),
        ],
    )

    query = parse_qsl(urlsplit(request.url).query)
    assert query == [
        ("page", "1"),
        ("tag", "b"),
        ("tag", "a"),
        ("page", "2"),
        ("tag", "a"),
    ]


def test_json_body_sets_content_type_and_encodes_compactly():
    request = build_request(
        BASE, "POST", "/test", options=[with_json_body({"name": "test"})]
    )

    assert request.headers["Content-Type"] == "application/json"
    assert request.body == b'{"name":"test"}'
    assert json.loads(request.body) == {"name": "test"}


def test_none_json_body_is_a_noop():
    request = build_request(BASE, "POST", "/test", options=[with_json_body(None)])

    assert request.body is None
    assert "Content-Type" not in request.headers


def test_header_after_json_body_overrides_content_type():
    request = build_request(
        BASE,
        "POST",
        "/test",
        options=[
            with_json_body([1, 2]),
            with_header("Content-Type", "application/vnd.api+json"),
        ],
    )

    assert request.headers["Content-Type"] == "application/vnd.api+json"
    assert request.body == b"[1,2]"


@pytest.mark.parametrize("body", [{"x": object()}, {"x": float("nan")}, {1j: 1}])
def test_unserializable_json_body_raises_build_error(body):
    with pytest.raises(RequestBuildError):
        build_request(BASE, "POST", "/test", options=[with_json_body(body)])


def test_raw_body_option():
    request = build_request(
        BASE,
        "PUT",
        "/blob",
        options=[with_body("héllo", content_type="text/plain; charset=utf-8")],
    )

    assert request.body == "héllo".encode("utf-8")
    assert request.headers["Content-Type"] == "text/plain; charset=utf-8"


def test_option_returning_wrong_type_raises_build_error():
    with pytest.raises(RequestBuildError):
        build_request(BASE, "GET", "/", options=[lambda draft: None])


def test_invalid_url_surfaces_before_options_run():
    calls = []

    def option(draft):
        calls.append(draft)
        return draft

    with pytest.raises(InvalidURLError):
        build_request("nope", "GET", "/", options=[option])
    assert calls == []


def test_draft_is_immutable_between_options():
    draft = RequestDraft(method="GET", url=BASE)
    changed = with_header("X-A", "1")(draft)

    assert draft.headers == ()
    assert changed.headers == (("X-A", "1"),)
