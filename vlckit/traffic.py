"""Per-peer traffic accounting used to pick peers to disconnect."""

from __future__ import annotations

from collections.abc import Hashable
from typing import Optional


class TrafficMonitor:
    """Counts bytes received from each peer.

    ``fraction_to_disconnect`` is the share of peers, taken from the
    heaviest, that :meth:`top_traffic_peers` reports.
    """

    def __init__(self, fraction_to_disconnect: float) -> None:
        self.fraction_to_disconnect = fraction_to_disconnect
        self._peer_traffic: dict[Hashable, int] = {}

    @property
    def peer_traffic(self) -> dict[Hashable, int]:
        """A copy of the byte count recorded for each peer."""
        return dict(self._peer_traffic)

    def top_traffic_peers(self) -> list[Hashable]:
        """Return the heaviest peers, ordered by traffic, largest first."""
        if not self._peer_traffic:
            return []
        ranked = sorted(self._peer_traffic.items(), key=lambda item: item[1], reverse=True)
        count = int(len(ranked) * self.fraction_to_disconnect)
        return [peer_id for peer_id, _ in ranked[:count]]

    def record_traffic(self, peer_id: Hashable, nbytes: int) -> None:
        """Add ``nbytes`` to the traffic recorded for ``peer_id``."""
        if nbytes < 0:
            raise ValueError(f"byte count must be non-negative, got {nbytes}")
        self._peer_traffic[peer_id] = self._peer_traffic.get(peer_id, 0) + nbytes

    def clear_peer_traffic(self) -> None:
        """Forget all recorded traffic."""
        self._peer_traffic.clear()


class PeerManager:
    """Traffic monitor together with the list of banned peers.

    ``peer_ban_list`` maps a peer id to the time its ban expires, or
    ``None`` for a ban without expiry.
    """

    def __init__(self, fraction_to_disconnect: float) -> None:
        self.traffic = TrafficMonitor(fraction_to_disconnect)
        self.peer_ban_list: dict[Hashable, Optional[float]] = {}