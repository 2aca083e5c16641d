# src/meshnode/net/rpc.py
"""
RPC correlation and retry.

The transport send primitive is fire-and-forget and may silently lose a
message. For requests this node originates (gossip fanout), the engine turns
that into at-least-once delivery:

  - issue_request() records a pending entry keyed by the request msg_id, arms a
    timer and sends the envelope.
  - On timer expiry the identical envelope (same msg_id) is re-sent and the
    timer re-armed. Retry is unbounded at a constant interval.
  - A send that raises is logged and left to the armed timer, so the caller
    can go on with the rest of its outbound batch.
  - resolve() matches an inbound response by in_reply_to, cancels the timer,
    drops the entry and completes the caller's Future.

Unmatched responses (late or duplicate acks) are ignored.

Locking:
  - The engine shares the node's lock. A timer fire re-checks, under that lock,
    that its entry is still pending and still on the same generation, so a
    resolution that already removed the entry always wins.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from meshnode.config import DEFAULT_RPC_TIMEOUT_MS
from meshnode.net.messages import Envelope, ErrorBody
from meshnode.net.net_logging import log_event
from meshnode.runtime.errors import DuplicateMsgIdError, MissingMsgIdError, error_name
from meshnode.runtime.metrics import inc_counter, set_gauge


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]
SendFn = Callable[[Envelope], None]
ResponseCallback = Callable[[Envelope], None]


def thread_timer(delay_s: float, fn: Callable[[], None]) -> TimerHandle:
    t = threading.Timer(delay_s, fn)
    t.daemon = True
    t.start()
    return t


@dataclass
class PendingCall:
    envelope: Envelope
    future: "Future[Envelope]"
    on_response: Optional[ResponseCallback] = None
    timer: Optional[TimerHandle] = None
    attempts: int = 0
    generation: int = 0


class RpcEngine:
    def __init__(
        self,
        *,
        send_fn: SendFn,
        timeout_ms: int = DEFAULT_RPC_TIMEOUT_MS,
        lock: Optional[threading.RLock] = None,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self._send_fn = send_fn
        self._timeout_s = max(1, int(timeout_ms)) / 1000.0
        self._lock = lock if lock is not None else threading.RLock()
        self._timer_factory = timer_factory or thread_timer
        self._pending: Dict[int, PendingCall] = {}
        self._closed = False
        self._logger = logging.getLogger("meshnode.rpc")

    # -------------------------
    # Introspection
    # -------------------------

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_pending(self, msg_id: int) -> bool:
        with self._lock:
            return msg_id in self._pending

    def attempts(self, msg_id: int) -> int:
        with self._lock:
            call = self._pending.get(msg_id)
            return call.attempts if call is not None else 0

    # -------------------------
    # Issue / retry
    # -------------------------

    def issue_request(self, envelope: Envelope, on_response: Optional[ResponseCallback] = None) -> "Future[Envelope]":
        msg_id = envelope.body.msg_id
        if msg_id is None:
            raise MissingMsgIdError(f"outbound {envelope.body.type!r} to {envelope.dest!r} has no msg_id")

        fut: "Future[Envelope]" = Future()
        with self._lock:
            if msg_id in self._pending:
                raise DuplicateMsgIdError(f"msg_id {msg_id} is already pending")
            call = PendingCall(envelope=envelope, future=fut, on_response=on_response)
            self._pending[msg_id] = call
            set_gauge("rpc_pending", len(self._pending))
            inc_counter("rpc_issued_total", 1)
            self._try_transmit(msg_id, call)
        return fut

    def _arm(self, msg_id: int, call: PendingCall) -> None:
        call.generation += 1
        gen = call.generation
        call.timer = self._timer_factory(self._timeout_s, lambda: self._on_timeout(msg_id, gen))

    def _transmit(self, msg_id: int, call: PendingCall) -> None:
        # Arm first so a failing send still gets retried.
        self._arm(msg_id, call)
        call.attempts += 1
        self._send_fn(call.envelope)

    def _try_transmit(self, msg_id: int, call: PendingCall) -> None:
        # The armed timer covers a failed send; the caller keeps going.
        try:
            self._transmit(msg_id, call)
        except Exception:
            self._logger.exception("rpc send failed msg_id=%s dest=%s", msg_id, call.envelope.dest)

    def _on_timeout(self, msg_id: int, generation: int) -> None:
        with self._lock:
            if self._closed:
                return
            call = self._pending.get(msg_id)
            if call is None or call.generation != generation:
                return
            inc_counter("rpc_retry_total", 1)
            log_event(
                self._logger,
                "rpc_retry",
                msg_id=msg_id,
                dest=call.envelope.dest,
                type=call.envelope.body.type,
                attempt=call.attempts + 1,
            )
            self._try_transmit(msg_id, call)

    # -------------------------
    # Resolution
    # -------------------------

    def resolve(self, response: Envelope) -> bool:
        """Complete the pending call answered by `response`.

        Returns False (and does nothing) if no call matches.
        """
        reply_to = getattr(response.body, "in_reply_to", None)
        if reply_to is None:
            inc_counter("rpc_unmatched_total", 1)
            return False

        with self._lock:
            call = self._pending.pop(reply_to, None)
            if call is None:
                inc_counter("rpc_unmatched_total", 1)
                log_event(
                    self._logger,
                    "rpc_unmatched",
                    level=logging.DEBUG,
                    in_reply_to=reply_to,
                    src=response.src,
                    type=response.body.type,
                )
                return False
            if call.timer is not None:
                call.timer.cancel()
            call.timer = None
            set_gauge("rpc_pending", len(self._pending))
            inc_counter("rpc_resolved_total", 1)

        if isinstance(response.body, ErrorBody):
            log_event(
                self._logger,
                "rpc_rejected",
                msg_id=reply_to,
                src=response.src,
                code=response.body.code,
                error=error_name(response.body.code),
                text=response.body.text,
            )

        call.future.set_result(response)
        if call.on_response is not None:
            call.on_response(response)
        return True

    # -------------------------
    # Shutdown
    # -------------------------

    def close(self) -> None:
        with self._lock:
            self._closed = True
            calls = list(self._pending.values())
            self._pending.clear()
            set_gauge("rpc_pending", 0)
        for call in calls:
            if call.timer is not None:
                call.timer.cancel()
            call.future.cancel()
