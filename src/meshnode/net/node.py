from __future__ import annotations

import logging
import threading
from typing import List, Optional

from meshnode.config import NodeConfig, load_node_config
from meshnode.net.codec import WireDecodeError, decode_message, encode_message
from meshnode.net.gossip import GossipEngine
from meshnode.net.messages import Envelope, is_request, is_response
from meshnode.net.net_logging import log_event
from meshnode.net.router import Router
from meshnode.net.rpc import RpcEngine, TimerFactory
from meshnode.net.transport import Transport
from meshnode.runtime.metrics import inc_counter
from meshnode.runtime.node_state import NodeState


class Node:
    """
    Wires codec, router, gossip and RPC engine to a transport.

    - Inbound payloads are handled one at a time under the node lock.
    - RPC timer fires take the same lock, so node state and the pending table
      are never observed mid-update.
    - Outbound requests go through the RPC engine; everything else is sent
      directly.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        cfg: Optional[NodeConfig] = None,
        state: Optional[NodeState] = None,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.cfg = cfg or load_node_config()
        self.state = state if state is not None else NodeState()
        self.transport = transport

        self._lock = threading.RLock()
        self.rpc = RpcEngine(
            send_fn=self._send,
            timeout_ms=self.cfg.rpc_timeout_ms,
            lock=self._lock,
            timer_factory=timer_factory,
        )
        self.router = Router(state=self.state, gossip=GossipEngine())

        self._logger = logging.getLogger("meshnode.net")

    @property
    def node_id(self) -> str:
        return self.state.node_id

    # -------------------------
    # Outbound
    # -------------------------

    def _send(self, env: Envelope) -> None:
        self.transport.send(encode_message(env))
        inc_counter("net_msgs_out_total", 1)

    # -------------------------
    # Inbound
    # -------------------------

    def handle_payload(self, payload: bytes | str) -> List[Envelope]:
        if isinstance(payload, (bytes, str)) and not payload.strip():
            return []
        try:
            env = decode_message(payload)
        except WireDecodeError as e:
            inc_counter("net_decode_failed_total", 1)
            log_event(self._logger, "decode_failed", level=logging.WARNING, code=e.code, err=str(e))
            return []
        return self.handle_envelope(env)

    def handle_envelope(self, env: Envelope) -> List[Envelope]:
        inc_counter("net_msgs_in_total", 1)
        if is_response(env.body):
            # resolve() locks the pending table itself; completions run unlocked.
            self.rpc.resolve(env)
            return []

        with self._lock:
            out = self.router.handle_message(env)
            for o in out:
                if is_request(o.body):
                    self.rpc.issue_request(o)
                else:
                    self._send(o)
            return out

    # -------------------------
    # Lifecycle
    # -------------------------

    def serve(self) -> None:
        """Process inbound payloads until the transport is exhausted."""
        for payload in self.transport.recv():
            try:
                self.handle_payload(payload)
            except Exception:
                self._logger.exception("failed to handle inbound message")

    def stop(self) -> None:
        self.rpc.close()
        self.transport.close()
