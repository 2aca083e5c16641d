from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from meshnode.net.codec import loads_json

Json = Dict[str, Any]


class PayloadHandler(Protocol):
    def handle_payload(self, payload: bytes | str) -> Any: ...


class InMemoryTransport:
    """
    Minimal in-process transport used for unit tests.

    - Does not touch stdin/stdout
    - Provides the same surface Node expects: send(), recv(), close()
    """

    def __init__(self) -> None:
        self._inbox: List[bytes | str] = []
        self._out: List[bytes] = []
        self._closed = False

    def send(self, payload: bytes) -> None:
        if self._closed:
            return
        self._out.append(payload)

    def recv(self) -> List[bytes | str]:
        out = list(self._inbox)
        self._inbox.clear()
        return out

    def close(self) -> None:
        self._closed = True

    # ---- helpers for tests / harness ----

    def inject(self, payload: bytes | str) -> None:
        self._inbox.append(payload)

    def drain(self) -> List[bytes]:
        out = list(self._out)
        self._out.clear()
        return out

    def drain_json(self) -> List[Json]:
        return [loads_json(p) for p in self.drain()]


DropFn = Callable[[Json], bool]


class _Endpoint:
    def __init__(self, network: "MemoryNetwork") -> None:
        self._network = network
        self._closed = False

    def send(self, payload: bytes) -> None:
        if self._closed:
            return
        self._network.submit(payload)

    def recv(self) -> List[bytes | str]:
        return []

    def close(self) -> None:
        self._closed = True


class MemoryNetwork:
    """
    A lossy in-process network joining several nodes.

    Payloads are queued on send and delivered one at a time by step(), which
    routes on the envelope `dest`. Destinations that are not attached nodes
    (harness clients) land in client_inbox. drop_fn(envelope) -> True loses a
    message in flight.
    """

    def __init__(self, *, drop_fn: Optional[DropFn] = None) -> None:
        self._queue: Deque[bytes | str] = deque()
        self._nodes: Dict[str, PayloadHandler] = {}
        self._drop_fn = drop_fn
        self.client_inbox: List[Json] = []
        self.delivered = 0
        self.dropped = 0

    def endpoint(self) -> _Endpoint:
        return _Endpoint(self)

    def attach(self, node_id: str, handler: PayloadHandler) -> None:
        self._nodes[str(node_id)] = handler

    def set_drop_fn(self, drop_fn: Optional[DropFn]) -> None:
        self._drop_fn = drop_fn

    def submit(self, payload: bytes | str) -> None:
        self._queue.append(payload)

    def step(self) -> bool:
        if not self._queue:
            return False
        payload = self._queue.popleft()
        raw = loads_json(payload)
        dest = raw.get("dest") if isinstance(raw, dict) else None

        if self._drop_fn is not None and self._drop_fn(raw):
            self.dropped += 1
            return True

        handler = self._nodes.get(str(dest))
        if handler is None:
            self.client_inbox.append(raw)
            return True

        self.delivered += 1
        handler.handle_payload(payload)
        return True

    def run_until_idle(self, *, max_steps: int = 100_000) -> int:
        steps = 0
        while steps < max_steps and self.step():
            steps += 1
        return steps
