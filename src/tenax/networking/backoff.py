"""Backoff policies consumed by the retrying executor.

A policy is an immutable prototype that can be shared between threads and
clients. Every logical call asks it for a fresh cursor via ``start()``; the
cursor holds the retry counter and elapsed-time tracking for that call only.
A cursor's ``next_wait()`` returns the seconds to wait before the next attempt,
or ``STOP`` when no further attempt should be made.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

from .context import CallContext

# Returned by a cursor when no further attempt should be made.
STOP = None


class BackoffCursor(Protocol):
    def next_wait(self) -> float | None:
        ...


class BackoffPolicy(Protocol):
    def start(self) -> BackoffCursor:
        ...


@dataclass(frozen=True)
class ExponentialBackoff:
    """Exponentially growing, randomized waits bounded by an elapsed budget.

    Each wait is drawn uniformly from
    ``[interval * (1 - randomization), interval * (1 + randomization)]``; the
    interval then grows by ``multiplier`` up to ``max_interval_seconds``. The
    cursor stops once the time since ``start()`` plus the next wait would
    exceed ``max_elapsed_seconds`` (``None`` disables the budget).
    """

    initial_interval_seconds: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval_seconds: float = 60.0
    max_elapsed_seconds: float | None = 30.0
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)
    rng: Callable[[], float] = field(default=random.random, compare=False)

    def __post_init__(self) -> None:
        if self.initial_interval_seconds < 0:
            raise ValueError("initial_interval_seconds must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if not 0 <= self.randomization_factor <= 1:
            raise ValueError("randomization_factor must be within [0, 1]")
        if self.max_interval_seconds < self.initial_interval_seconds:
            raise ValueError(
                "max_interval_seconds must be >= initial_interval_seconds"
            )
        if self.max_elapsed_seconds is not None and self.max_elapsed_seconds <= 0:
            raise ValueError("max_elapsed_seconds must be > 0 when provided")

    def start(self) -> _ExponentialCursor:
        return _ExponentialCursor(self)


class _ExponentialCursor:
    def __init__(self, policy: ExponentialBackoff) -> None:
        self._policy = policy
        self._started_at = policy.clock()
        self._interval = policy.initial_interval_seconds

    def elapsed(self) -> float:
        return self._policy.clock() - self._started_at

    def next_wait(self) -> float | None:
        policy = self._policy
        delta = policy.randomization_factor * self._interval
        low = self._interval - delta
        wait = low + policy.rng() * (2 * delta)
        self._interval = min(
            self._interval * policy.multiplier, policy.max_interval_seconds
        )
        if (
            policy.max_elapsed_seconds is not None
            and self.elapsed() + wait > policy.max_elapsed_seconds
        ):
            return STOP
        return wait


@dataclass(frozen=True)
class ConstantBackoff:
    """Fixed wait between attempts, never stopping on its own."""

    interval_seconds: float

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")

    def start(self) -> _FixedCursor:
        return _FixedCursor(self.interval_seconds)


@dataclass(frozen=True)
class ZeroBackoff:
    """Retry immediately, forever. Mostly useful wrapped in MaxRetries."""

    def start(self) -> _FixedCursor:
        return _FixedCursor(0.0)


@dataclass(frozen=True)
class StopBackoff:
    """Never retry."""

    def start(self) -> _FixedCursor:
        return _FixedCursor(STOP)


class _FixedCursor:
    def __init__(self, wait: float | None) -> None:
        self._wait = wait

    def next_wait(self) -> float | None:
        return self._wait


@dataclass(frozen=True)
class MaxRetries:
    """Limit another policy to ``max_retries`` retries per call."""

    policy: BackoffPolicy
    max_retries: int

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def start(self) -> _CountingCursor:
        return _CountingCursor(self.policy.start(), self.max_retries)


class _CountingCursor:
    def __init__(self, inner: BackoffCursor, max_retries: int) -> None:
        self._inner = inner
        self._max_retries = max_retries
        self.retries = 0

    def next_wait(self) -> float | None:
        if self.retries >= self._max_retries:
            return STOP
        self.retries += 1
        return self._inner.next_wait()


class _ContextCursor:
    def __init__(self, inner: BackoffCursor, context: CallContext) -> None:
        self._inner = inner
        self._context = context

    def next_wait(self) -> float | None:
        if self._context.done:
            return STOP
        return self._inner.next_wait()


def bind_context(cursor: BackoffCursor, context: CallContext) -> BackoffCursor:
    """Wrap ``cursor`` so it stops once ``context`` is done."""
    return _ContextCursor(cursor, context)


def default_backoff() -> ExponentialBackoff:
    """Exponential backoff with a 30 second elapsed-time ceiling."""
    return ExponentialBackoff()
