"""Vector clock keyed by node id, ordered by causal precedence."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


class VectorClock:
    """A mutable vector clock mapping node ids to event counters.

    ``partial_cmp`` returns ``-1``, ``0`` or ``1`` when the clocks are
    ordered, and ``None`` when they are concurrent.
    """

    __slots__ = ("values",)

    def __init__(self, values: Mapping[int, int] | None = None) -> None:
        self.values: dict[int, int] = dict(values or {})

    def __repr__(self) -> str:
        return f"VectorClock({self.values!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self.values == other.values

    __hash__ = None  # type: ignore[assignment]

    def __lt__(self, other: VectorClock) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self.partial_cmp(other) == -1

    def __le__(self, other: VectorClock) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self.partial_cmp(other) in (-1, 0)

    def __gt__(self, other: VectorClock) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self.partial_cmp(other) == 1

    def __ge__(self, other: VectorClock) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self.partial_cmp(other) in (0, 1)

    def partial_cmp(self, other: VectorClock) -> int | None:
        """Compare causally: -1, 0, 1, or None when concurrent."""
        less = False
        greater = False
        for node_id, value in self.values.items():
            other_value = other.values.get(node_id)
            if other_value is None or value > other_value:
                greater = True
            elif value < other_value:
                less = True
        if any(node_id not in self.values for node_id in other.values):
            less = True

        if less and greater:
            return None
        if less:
            return -1
        if greater:
            return 1
        return 0

    def inc(self, node_id: int) -> None:
        """Increment the counter of ``node_id``."""
        self.values[node_id] = self.values.get(node_id, 0) + 1

    def get(self, node_id: int) -> int:
        """Return the counter of ``node_id``, recording it as zero if absent."""
        return self.values.setdefault(node_id, 0)

    def clear(self) -> None:
        """Reset the clock."""
        self.values.clear()

    def merge(self, others: Iterable[VectorClock]) -> None:
        """Take the element-wise maximum with every clock in ``others``."""
        for clock in others:
            for node_id, value in clock.values.items():
                self.values[node_id] = max(self.values.get(node_id, 0), value)

    def diff(self, other: VectorClock) -> VectorClock:
        """Return this clock minus ``other``, floored at zero per entry."""
        return VectorClock(
            {
                node_id: max(value - other.values.get(node_id, 0), 0)
                for node_id, value in self.values.items()
            }
        )

    def index_key(self) -> str:
        """Return a string key built from the entries in node id order."""
        return "".join(
            f"{node_id}-{value}-" for node_id, value in sorted(self.values.items())
        )

    def base_common(self, other: VectorClock) -> VectorClock:
        """Return the element-wise minimum over this clock's entries."""
        return VectorClock(
            {
                node_id: min(value, other.values.get(node_id, 0))
                for node_id, value in self.values.items()
            }
        )

    def is_genesis(self) -> bool:
        """True when every counter is zero."""
        return sum(self.values.values()) == 0

    def copy(self) -> VectorClock:
        """Return an independent copy of this clock."""
        return VectorClock(self.values)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {"values": {str(node_id): value for node_id, value in self.values.items()}}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VectorClock:
        """Build a clock from the output of :meth:`to_dict`."""
        return cls({int(node_id): int(value) for node_id, value in data["values"].items()})