"""
Network transport (abstract I/O layer).

Goal:
  Keep codec/router/gossip/rpc pure and testable by hiding the channel behind a
  minimal interface.

Notes:
  - A payload is exactly one encoded envelope (compact JSON, no newline).
  - Framing (one JSON value per line) is the transport's job.
  - send() is fire-and-forget: delivery is not acknowledged at this layer.

This module is pure structure: no I/O here.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """
    A line-oriented, bidirectional channel.

    The node loop iterates recv() until it is exhausted.
    """

    def send(self, payload: bytes) -> None: ...

    def recv(self) -> Iterable[bytes | str]: ...

    def close(self) -> None: ...
