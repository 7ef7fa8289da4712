# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
# pyright: reportMissingParameterType=false
from __future__ import annotations

import io
from http import HTTPStatus
from typing import Callable, Mapping

import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

BASE_URL = "http://service.test"

Reply = tuple[int, bytes] | tuple[int, bytes, Mapping[str, str]]
Handler = Callable[[requests.PreparedRequest], "Reply | requests.Response"]


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


class ScriptedAdapter(BaseAdapter):
    """In-process adapter answering every request through ``handler``.

    The handler returns ``(status, body[, headers])``, a ready-made
    ``requests.Response``, or raises to simulate a transport failure.
    Each prepared request is recorded in ``requests``.
    """

    def __init__(self, handler: Handler) -> None:
        super().__init__()
        self.handler = handler
        self.requests: list[requests.PreparedRequest] = []
        self.send_kwargs: list[dict] = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        self.send_kwargs.append(kwargs)
        reply = self.handler(request)
        if isinstance(reply, requests.Response):
            reply.request = request
            reply.url = reply.url or request.url
            return reply
        status, body = reply[0], reply[1]
        headers = reply[2] if len(reply) > 2 else {}

        response = requests.Response()
        response.status_code = status
        response.reason = _reason(status)
        response.headers = CaseInsensitiveDict(headers)
        response.raw = io.BytesIO(body)
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        pass


def scripted_session(handler: Handler) -> tuple[requests.Session, ScriptedAdapter]:
    session = requests.Session()
    session.trust_env = False
    adapter = ScriptedAdapter(handler)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session, adapter


def replies(*script: Reply) -> Handler:
    """Handler answering with each scripted reply in turn, repeating the last."""
    remaining = list(script)

    def handler(_request):
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return handler
