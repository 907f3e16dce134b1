"""Hybrid logical clock: wall time combined with a logical counter."""

from __future__ import annotations

import functools
import threading
import time
from collections.abc import Callable
from typing import Optional

_NANOS_PER_SECOND = 1_000_000_000


@functools.total_ordering
class HLTimespec:
    """A hybrid logical timestamp, ordered by wall time and then logical ticks.

    The wall time is kept as nanoseconds since the Unix epoch.
    """

    __slots__ = ("_wall", "_logical")

    def __init__(self, seconds: int = 0, nanos: int = 0, logical: int = 0) -> None:
        if seconds < 0 or nanos < 0 or logical < 0:
            raise ValueError("timestamp components must be non-negative")
        self._wall = seconds * _NANOS_PER_SECOND + nanos
        self._logical = logical

    @property
    def wall(self) -> int:
        """Wall time in nanoseconds since the Unix epoch."""
        return self._wall

    @property
    def logical(self) -> int:
        """Logical tick count."""
        return self._logical

    def _key(self) -> tuple[int, int]:
        return (self._wall, self._logical)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HLTimespec):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: HLTimespec) -> bool:
        if not isinstance(other, HLTimespec):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"HLTimespec(wall={self._wall}, logical={self._logical})"

    def __str__(self) -> str:
        seconds, nanos = divmod(self._wall, _NANOS_PER_SECOND)
        return f"{seconds}.{nanos:09d}+{self._logical}"


@functools.total_ordering
class HybridLogicalClock:
    """A hybrid logical clock.

    ``now`` supplies the physical wall time in nanoseconds since the Unix
    epoch; it defaults to the system clock. Access is serialised by an
    internal lock, so one clock may be shared between threads.
    """

    def __init__(self, now: Optional[Callable[[], int]] = None) -> None:
        self._now = now or time.time_ns
        self._wall = 0
        self._logical = 0
        self._lock = threading.Lock()

    def _snapshot(self) -> HLTimespec:
        return HLTimespec(0, self._wall, self._logical)

    @property
    def timestamp(self) -> HLTimespec:
        """The latest timestamp issued by the clock."""
        with self._lock:
            return self._snapshot()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HybridLogicalClock):
            return NotImplemented
        return self.timestamp == other.timestamp

    def __lt__(self, other: HybridLogicalClock) -> bool:
        if not isinstance(other, HybridLogicalClock):
            return NotImplemented
        return self.timestamp < other.timestamp

    __hash__ = None  # type: ignore[assignment]

    def get_time(self) -> HLTimespec:
        """Generate a timestamp for a local or send event."""
        with self._lock:
            wall = self._now()
            if self._wall < wall:
                self._wall = wall
                self._logical = 0
            else:
                self._logical += 1
            return self._snapshot()

    def update(self, event: HLTimespec) -> HLTimespec:
        """Assign a timestamp to a received event stamped ``event`` remotely."""
        with self._lock:
            wall = self._now()
            if wall > event.wall and wall > self._wall:
                self._wall = wall
                self._logical = 0
            elif event.wall > self._wall:
                self._wall = event.wall
                self._logical = event.logical + 1
            elif self._wall > event.wall:
                self._logical += 1
            else:
                self._logical = max(self._logical, event.logical) + 1
            return self._snapshot()