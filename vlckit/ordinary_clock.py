"""Immutable vector clock with deterministic ordering and hashing."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator, Mapping
from typing import Union

from vlckit.bincode import encode_u64_map

_U64_MAX = 2**64 - 1

_Entries = Union[Mapping[int, int], Iterable[tuple[int, int]], None]


def _check_u64(value: int) -> int:
    if not isinstance(value, int) or value < 0 or value > _U64_MAX:
        raise ValueError(f"expected an unsigned 64-bit integer, got {value!r}")
    return value


class OrdinaryClock(Mapping[int, int]):
    """A vector clock of key ids to counters, kept in key order.

    Comparison methods return ``-1``, ``0`` or ``1``; ``partial_cmp``
    returns ``None`` for concurrent clocks.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: _Entries = None) -> None:
        items = dict(entries) if entries is not None else {}
        for key, value in items.items():
            _check_u64(key)
            _check_u64(value)
        self._entries: dict[int, int] = dict(sorted(items.items()))

    def __getitem__(self, key: int) -> int:
        return self._entries[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"OrdinaryClock({self._entries!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrdinaryClock):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(tuple(self._entries.items()))

    def __lt__(self, other: OrdinaryClock) -> bool:
        if not isinstance(other, OrdinaryClock):
            return NotImplemented
        return self.partial_cmp(other) == -1

    def __le__(self, other: OrdinaryClock) -> bool:
        if not isinstance(other, OrdinaryClock):
            return NotImplemented
        return self.partial_cmp(other) in (-1, 0)

    def __gt__(self, other: OrdinaryClock) -> bool:
        if not isinstance(other, OrdinaryClock):
            return NotImplemented
        return self.partial_cmp(other) == 1

    def __ge__(self, other: OrdinaryClock) -> bool:
        if not isinstance(other, OrdinaryClock):
            return NotImplemented
        return self.partial_cmp(other) in (0, 1)

    def is_genesis(self) -> bool:
        """True when every counter is zero."""
        return all(n == 0 for n in self._entries.values())

    def merge(self, other: OrdinaryClock) -> OrdinaryClock:
        """Return the element-wise maximum of two clocks."""
        merged = dict(self._entries)
        for key, value in other.items():
            merged[key] = max(merged.get(key, value), value)
        return OrdinaryClock(merged)

    def update(self, others: Iterable[OrdinaryClock], key_id: int) -> OrdinaryClock:
        """Merge with ``others`` and then increment ``key_id``."""
        merged = self
        for dep in others:
            merged = merged.merge(dep)
        entries = dict(merged._entries)
        entries[key_id] = entries.get(key_id, 0) + 1
        return OrdinaryClock(entries)

    @classmethod
    def base(cls, others: Iterable[OrdinaryClock]) -> OrdinaryClock:
        """Return the element-wise minimum over the keys present in any clock."""
        combined: dict[int, int] = {}
        for clock in others:
            for key, value in clock.items():
                combined[key] = min(combined[key], value) if key in combined else value
        return cls(combined)

    def calculate_sha256(self) -> bytes:
        """Return the SHA-256 digest of the clock's binary encoding."""
        return hashlib.sha256(encode_u64_map(self._entries)).digest()

    def partial_cmp(self, other: OrdinaryClock) -> int | None:
        """Compare causally, ignoring zero entries: -1, 0, 1 or None."""
        ge_self = _dominates(self, other)
        ge_other = _dominates(other, self)
        if ge_self and ge_other:
            return 0
        if ge_self:
            return 1
        if ge_other:
            return -1
        return None

    def dep_cmp(self, other: OrdinaryClock, key_id: int) -> int:
        """Compare the counters of a single key; a missing key is lowest."""
        mine = self._entries.get(key_id)
        theirs = other._entries.get(key_id)
        if mine is None and theirs is None:
            return 0
        if mine is None:
            return -1
        if theirs is None:
            return 1
        return (mine > theirs) - (mine < theirs)

    def reduce(self) -> int:
        """Collapse the clock into a Lamport time: the sum of counters."""
        return sum(self._entries.values())


def _dominates(clock: OrdinaryClock, other: OrdinaryClock) -> bool:
    for key, other_n in other.items():
        if other_n == 0:
            continue
        n = clock.get(key)
        if n is None or n < other_n:
            return False
    return True