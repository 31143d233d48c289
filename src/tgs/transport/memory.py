"""In-memory transport — replays captured downlink bytes and records uplink writes."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable

from tgs.core.base import Transport
from tgs.errors import TransportError


class MemoryTransport(Transport):
    """Deliver pre-recorded byte chunks one ``read`` at a time.

    With ``close_when_drained`` the transport reports one idle read after
    the last chunk, so the session flushes, and then closes itself.
    """

    def __init__(self, chunks: Iterable[bytes] = (), close_when_drained: bool = True) -> None:
        self._chunks: deque[bytes] = deque(chunks)
        self._close_when_drained = close_when_drained
        self._open = True
        self.written: list[bytes] = []

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = 64, **kwargs: bool) -> MemoryTransport:
        """Split a capture into deliveries of ``chunk_size`` bytes."""
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        return cls((data[i : i + chunk_size] for i in range(0, len(data), chunk_size)), **kwargs)

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def commands(self) -> list[str]:
        """Written lines, decoded and without their newline."""
        return [w.decode("ascii", errors="replace").rstrip("\n") for w in self.written]

    def push(self, data: bytes) -> None:
        self._chunks.append(data)

    async def read(self) -> bytes:
        await asyncio.sleep(0)
        if self._chunks:
            return self._chunks.popleft()
        if self._close_when_drained:
            self._open = False
        return b""

    async def write(self, data: bytes) -> None:
        if not self._open:
            raise TransportError("Not connected to satellite")
        self.written.append(bytes(data))

    def close(self) -> None:
        self._open = False
