# src/meshnode/net/gossip.py
"""
Gossip engine (broadcast flooding).

Purpose:
  - Disseminate an integer value to every reachable node while each node only
    knows its direct neighbours.
  - Deduplicate by value so re-delivery never triggers a second fanout.
  - Never echo a value back to the peer it arrived from.

Design:
  - Pure decision logic: the engine returns the peers to forward to; building
    and sending the forwarded requests is the router's and RPC engine's job.
  - Best-effort ordering: fanout follows neighbour list order.

Non-goals:
  - Bounded propagation latency
  - Ordering between concurrently broadcast values
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Set

from meshnode.net.net_logging import log_event
from meshnode.runtime.metrics import inc_counter
from meshnode.runtime.node_state import NodeState


class GossipEngine:
    def __init__(self) -> None:
        self._logger = logging.getLogger("meshnode.gossip")

    def _select_fanout(self, peers: Iterable[str], *, exclude: Set[str]) -> List[str]:
        out: List[str] = []
        for p in peers:
            if not p or p in exclude or p in out:
                continue
            out.append(p)
        return out

    def on_inbound_broadcast(self, *, state: NodeState, value: int, from_peer: str) -> List[str]:
        """
        Record `value` and return the neighbours it must be forwarded to.

        Returns [] when the value was already seen.
        """
        if not state.remember(value):
            inc_counter("gossip_duplicate_total", 1)
            log_event(self._logger, "gossip_duplicate", level=logging.DEBUG, value=value, src=from_peer)
            return []

        targets = self._select_fanout(state.neighbors(), exclude={from_peer, state.node_id})
        inc_counter("gossip_fanout_total", len(targets))
        log_event(self._logger, "gossip_fanout", level=logging.DEBUG, value=value, src=from_peer, targets=targets)
        return targets
