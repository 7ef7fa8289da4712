"""Cancellation and deadline signal scoped to one logical call."""

from __future__ import annotations

import logging
import threading
import time
import weakref
from typing import Callable

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "deadline exceeded"
CANCELED = "canceled"


class CallContext:
    """Thread-safe cancellation token with an optional deadline.

    A context is done once ``cancel()`` is called, its deadline passes, or its
    parent becomes done. ``wait()`` is the abortable sleep used between retry
    attempts.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        parent: CallContext | None = None,
    ) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0 when provided")
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._children: weakref.WeakSet[CallContext] = weakref.WeakSet()
        self._callbacks: list[Callable[[], None]] = []

        deadline = None if timeout is None else time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            if deadline is None or parent.deadline < deadline:
                deadline = parent.deadline
        self._deadline = deadline

        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> CallContext:
        """Return a context that is never done unless canceled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> CallContext:
        return cls(timeout=seconds)

    def child(self, timeout: float | None = None) -> CallContext:
        """Derive a context canceled together with this one."""
        return CallContext(timeout=timeout, parent=self)

    @property
    def deadline(self) -> float | None:
        """Deadline on the ``time.monotonic()`` clock, if any."""
        return self._deadline

    @property
    def reason(self) -> str | None:
        self._check_deadline()
        return self._reason

    @property
    def done(self) -> bool:
        self._check_deadline()
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = CANCELED) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children = list(self._children)
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("done callback raised during cancel")
        for child in children:
            child.cancel(reason)

    def add_done_callback(self, fn: Callable[[], None]) -> Callable[[], None]:
        """Run ``fn`` once when the context is canceled.

        ``fn`` runs immediately if the context is already done. Returns a
        function that unregisters ``fn``. Deadline expiry is noticed lazily,
        so callbacks fire on an explicit ``cancel()`` or when a done check
        or ``wait()`` observes the deadline.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return lambda: self._remove_callback(fn)
        fn()
        return lambda: None

    def _remove_callback(self, fn: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(fn)
            except ValueError:
                pass

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if the context finished first."""
        remaining = self.remaining()
        if remaining is not None and remaining <= seconds:
            if self._event.wait(remaining):
                return True
            self.cancel(DEADLINE_EXCEEDED)
            return True
        return self._event.wait(max(0.0, seconds))

    def _check_deadline(self) -> None:
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_EXCEEDED)

    def _attach(self, child: CallContext) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
            reason = self._reason or CANCELED
        child.cancel(reason)
