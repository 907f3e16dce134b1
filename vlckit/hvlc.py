"""Hybrid vector logical clock: a vector clock with a physical timestamp."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Iterable, Iterator, Mapping
from typing import Optional

from vlckit.bincode import encode_u64_map, encode_varint

_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1


def _now_ns() -> int:
    return time.time_ns()


class HVLCClock(Mapping[int, int]):
    """A vector clock of key ids to counters, stamped with wall time in nanoseconds.

    Unlike a plain vector clock the ordering is total: when the counters do
    not decide (equal or concurrent), the timestamps do. ``partial_cmp``
    returns ``-1``, ``0`` or ``1``.
    """

    __slots__ = ("inner", "timestamp")

    def __init__(
        self,
        inner: Optional[Mapping[int, int]] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        self.inner: dict[int, int] = dict(inner or {})
        self.timestamp: int = _now_ns() if timestamp is None else timestamp

    def __getitem__(self, key: int) -> int:
        return self.inner[key]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self.inner))

    def __len__(self) -> int:
        return len(self.inner)

    def __repr__(self) -> str:
        entries = dict(sorted(self.inner.items()))
        return f"HVLCClock(inner={entries!r}, timestamp={self.timestamp})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HVLCClock):
            return NotImplemented
        return self.inner == other.inner and self.timestamp == other.timestamp

    __hash__ = None  # type: ignore[assignment]

    def __lt__(self, other: HVLCClock) -> bool:
        if not isinstance(other, HVLCClock):
            return NotImplemented
        return self.partial_cmp(other) == -1

    def __le__(self, other: HVLCClock) -> bool:
        if not isinstance(other, HVLCClock):
            return NotImplemented
        return self.partial_cmp(other) in (-1, 0)

    def __gt__(self, other: HVLCClock) -> bool:
        if not isinstance(other, HVLCClock):
            return NotImplemented
        return self.partial_cmp(other) == 1

    def __ge__(self, other: HVLCClock) -> bool:
        if not isinstance(other, HVLCClock):
            return NotImplemented
        return self.partial_cmp(other) in (0, 1)

    def is_genesis(self) -> bool:
        """True when every counter is zero."""
        return all(n == 0 for n in self.inner.values())

    def merge(self, other: HVLCClock) -> HVLCClock:
        """Return the element-wise maximum, with the later timestamp."""
        merged = dict(self.inner)
        for key, value in other.inner.items():
            merged[key] = max(merged.get(key, value), value)
        return HVLCClock(
            dict(sorted(merged.items())), max(self.timestamp, other.timestamp)
        )

    def update(self, others: Iterable[HVLCClock], key_id: int) -> HVLCClock:
        """Merge with ``others`` and increment ``key_id``.

        If merging left the timestamp unchanged, it is refreshed to the
        current time.
        """
        updated = HVLCClock(self.inner, self.timestamp)
        for dep in others:
            updated = updated.merge(dep)
        if updated.timestamp == self.timestamp:
            updated.timestamp = _now_ns()
        updated.inner[key_id] = updated.inner.get(key_id, 0) + 1
        return updated

    @classmethod
    def base(cls, others: Iterable[HVLCClock]) -> HVLCClock:
        """Return the element-wise minimum and the earliest timestamp.

        With no clocks at all the timestamp is the largest 128-bit value.
        """
        combined: dict[int, int] = {}
        timestamp = _U128_MAX
        for clock in others:
            timestamp = min(timestamp, clock.timestamp)
            for key, value in clock.inner.items():
                combined[key] = min(combined[key], value) if key in combined else value
        return cls(dict(sorted(combined.items())), timestamp)

    def calculate_sha256(self) -> bytes:
        """Return the SHA-256 digest of the clock's binary encoding."""
        data = encode_u64_map(self.inner) + encode_varint(self.timestamp)
        return hashlib.sha256(data).digest()

    def partial_cmp(self, other: HVLCClock) -> int:
        """Compare by counters, falling back to timestamps when undecided."""
        ge_self = _dominates(self, other)
        ge_other = _dominates(other, self)
        if ge_self and not ge_other:
            return 1
        if ge_other and not ge_self:
            return -1
        return (self.timestamp > other.timestamp) - (self.timestamp < other.timestamp)

    def dep_cmp(self, other: HVLCClock, key_id: int) -> int:
        """Compare the counters of a single key; a missing key is lowest."""
        mine = self.inner.get(key_id)
        theirs = other.inner.get(key_id)
        if mine is None and theirs is None:
            return 0
        if mine is None:
            return -1
        if theirs is None:
            return 1
        return (mine > theirs) - (mine < theirs)

    def reduce(self) -> int:
        """Collapse the clock into a Lamport time: the sum of counters, truncated to 64 bits."""
        return sum(self.inner.values()) & _U64_MAX


def _dominates(clock: HVLCClock, other: HVLCClock) -> bool:
    for key, other_n in other.inner.items():
        if other_n == 0:
            continue
        n = clock.inner.get(key)
        if n is None or n < other_n:
            return False
    return True