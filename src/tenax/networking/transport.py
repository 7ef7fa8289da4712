"""Transport capability consumed by HttpClient.

The executor only needs ``send(prepared_request, **kwargs) -> Response``.
``requests.Session`` already satisfies that, which lets tests mount an
in-process adapter instead of opening sockets.
"""

from __future__ import annotations

import logging
import socket
from typing import Any, Protocol

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send(
        self, request: requests.PreparedRequest, **kwargs: Any
    ) -> requests.Response:
        ...


DEFAULT_POOL_CONNECTIONS = 10
DEFAULT_POOL_MAXSIZE = 20


def create_session(
    *,
    pool_connections: int = DEFAULT_POOL_CONNECTIONS,
    pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
    trust_env: bool = True,
) -> requests.Session:
    """Build the default pooled session shared by every call of a client.

    urllib3-level retries are disabled; retrying is the executor's job.
    """
    session = requests.Session()
    session.trust_env = trust_env
    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _response_socket(response: requests.Response) -> socket.socket | None:
    raw = getattr(response, "raw", None)
    # http.client keeps reading from its own file object after it has closed
    # the connection (HTTP/1.0 or "Connection: close"), so look there first.
    fp = getattr(getattr(raw, "_fp", None), "fp", None)
    sock = getattr(getattr(fp, "raw", None), "_sock", None)
    if not isinstance(sock, socket.socket):
        connection = getattr(raw, "_connection", None)
        sock = getattr(connection, "sock", None)
    return sock if isinstance(sock, socket.socket) else None


def abort_response(response: requests.Response) -> None:
    """Unblock a body read in progress on another thread.

    The socket under a streamed urllib3 response is shut down, so a pending
    ``recv`` returns and the reader fails with a truncated body. Responses
    without a real socket (in-process adapters, mocks) are left alone.
    """
    sock = _response_socket(response)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("response socket already closed: %s", exc)
