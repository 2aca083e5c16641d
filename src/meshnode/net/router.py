from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from meshnode.net.gossip import GossipEngine
from meshnode.net.messages import (
    Body,
    BroadcastBody,
    BroadcastOkBody,
    EchoBody,
    EchoOkBody,
    Envelope,
    GenerateOkBody,
    InitBody,
    InitOkBody,
    MsgType,
    ReadOkBody,
    TopologyBody,
    TopologyOkBody,
    is_response,
)
from meshnode.net.net_logging import log_event
from meshnode.runtime.errors import ProtocolError
from meshnode.runtime.node_state import NodeState


@dataclass
class Router:
    """Dispatch inbound requests by body type.

    handle_message() returns the outbound envelopes in send order. Every
    envelope it builds consumes exactly one msg_id from the node state.
    """

    state: NodeState
    gossip: GossipEngine = field(default_factory=GossipEngine)

    last_error: str = ""

    def __post_init__(self) -> None:
        self._logger = logging.getLogger("meshnode.net")

    # -------------------------
    # Envelope builders
    # -------------------------

    def _reply(self, request: Envelope, body: Body) -> Envelope:
        update = {"msg_id": self.state.take_msg_id()}
        if request.body.msg_id is not None:
            update["in_reply_to"] = request.body.msg_id
        return Envelope(src=self.state.node_id, dest=request.src, body=body.model_copy(update=update))

    def _request(self, dest: str, body: Body) -> Envelope:
        update = {"msg_id": self.state.take_msg_id()}
        return Envelope(src=self.state.node_id, dest=dest, body=body.model_copy(update=update))

    # -------------------------
    # Dispatch
    # -------------------------

    def handle_message(self, msg: Envelope) -> List[Envelope]:
        mtype = msg.body.type

        # Responses belong to the RPC engine.
        if is_response(msg.body):
            return []

        try:
            return self._dispatch(mtype, msg)
        except ProtocolError as e:
            self.last_error = str(e.text)
            log_event(self._logger, "request_rejected", type=mtype, src=msg.src, code=e.code)
            return [self._reply(msg, e.to_body())]

    def _dispatch(self, mtype: str, msg: Envelope) -> List[Envelope]:
        if mtype == MsgType.INIT:
            return [self._on_init(msg, msg.body)]  # type: ignore[arg-type]

        if mtype == MsgType.ECHO:
            return [self._on_echo(msg, msg.body)]  # type: ignore[arg-type]

        if mtype == MsgType.GENERATE:
            return [self._on_generate(msg)]

        if mtype == MsgType.BROADCAST:
            return self._on_broadcast(msg, msg.body)  # type: ignore[arg-type]

        if mtype == MsgType.READ:
            return [self._reply(msg, ReadOkBody(messages=self.state.messages))]

        if mtype == MsgType.TOPOLOGY:
            return [self._on_topology(msg, msg.body)]  # type: ignore[arg-type]

        raise ProtocolError.not_supported(mtype)

    # -------------------------
    # Handlers
    # -------------------------

    def _on_init(self, msg: Envelope, body: InitBody) -> Envelope:
        self.state.init(body.node_id, body.node_ids)
        log_event(self._logger, "node_init", node_id=body.node_id, node_ids=list(body.node_ids))
        return self._reply(msg, InitOkBody())

    def _on_echo(self, msg: Envelope, body: EchoBody) -> Envelope:
        return self._reply(msg, EchoOkBody(echo=body.echo))

    def _on_generate(self, msg: Envelope) -> Envelope:
        # The id embeds the msg_id this reply is about to be stamped with.
        uid = f"{self.state.node_id}-{self.state.next_msg_id}"
        return self._reply(msg, GenerateOkBody(id=uid))

    def _on_topology(self, msg: Envelope, body: TopologyBody) -> Envelope:
        self.state.set_topology(body.topology)
        log_event(self._logger, "topology_set", neighbors=self.state.neighbors())
        return self._reply(msg, TopologyOkBody())

    def _on_broadcast(self, msg: Envelope, body: BroadcastBody) -> List[Envelope]:
        out: List[Envelope] = []
        targets = self.gossip.on_inbound_broadcast(state=self.state, value=body.message, from_peer=msg.src)
        for peer in targets:
            out.append(self._request(peer, BroadcastBody(message=body.message)))
        out.append(self._reply(msg, BroadcastOkBody()))
        return out
