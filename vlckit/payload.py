"""Opaque byte payloads and shared network constants."""

from __future__ import annotations

# Suggested buffer size for datagrams.
DEFAULT_MAX_DATAGRAM_SIZE = 65507

# Round number of a block.
Round = int

GENESIS_ROUND: Round = 0

_PREVIEW_BYTES = 32


class Payload(bytes):
    """Bytes with a readable representation: text if valid UTF-8, else hex."""

    __slots__ = ()

    def __repr__(self) -> str:
        try:
            text = self.decode("utf-8")
        except UnicodeDecodeError:
            head = self[:_PREVIEW_BYTES].hex()
            tail = f".. <len {len(self)}>" if len(self) > _PREVIEW_BYTES else ""
            return f"Payload({head}{tail})"
        return f'Payload("{text}")'