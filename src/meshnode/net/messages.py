"""
Wire schemas for the node protocol.

Every message is an Envelope {src, dest, body}. The body is a tagged variant
selected by its `type` field. Request bodies carry an optional `msg_id`;
response bodies additionally carry an optional `in_reply_to`.

Models are strict: no coercion between JSON types ("5" is not an int, true is
not an int). Unknown keys inside a known body are ignored.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

PeerId = str


class MsgType(str, Enum):
    INIT = "init"
    ECHO = "echo"
    GENERATE = "generate"
    BROADCAST = "broadcast"
    READ = "read"
    TOPOLOGY = "topology"

    INIT_OK = "init_ok"
    ECHO_OK = "echo_ok"
    GENERATE_OK = "generate_ok"
    BROADCAST_OK = "broadcast_ok"
    READ_OK = "read_ok"
    TOPOLOGY_OK = "topology_ok"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Base Models
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)


class Body(_WireModel):
    type: str
    msg_id: Optional[int] = None


class RequestBody(Body):
    pass


class ResponseBody(Body):
    in_reply_to: Optional[int] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class InitBody(RequestBody):
    type: Literal["init"] = "init"
    node_id: str
    node_ids: List[str]


class EchoBody(RequestBody):
    type: Literal["echo"] = "echo"
    echo: Any


class GenerateBody(RequestBody):
    type: Literal["generate"] = "generate"


class BroadcastBody(RequestBody):
    type: Literal["broadcast"] = "broadcast"
    message: int


class ReadBody(RequestBody):
    type: Literal["read"] = "read"


class TopologyBody(RequestBody):
    type: Literal["topology"] = "topology"
    topology: Dict[str, List[str]]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class InitOkBody(ResponseBody):
    type: Literal["init_ok"] = "init_ok"


class EchoOkBody(ResponseBody):
    type: Literal["echo_ok"] = "echo_ok"
    echo: Any


class GenerateOkBody(ResponseBody):
    type: Literal["generate_ok"] = "generate_ok"
    id: str


class BroadcastOkBody(ResponseBody):
    type: Literal["broadcast_ok"] = "broadcast_ok"


class ReadOkBody(ResponseBody):
    type: Literal["read_ok"] = "read_ok"
    messages: List[int]


class TopologyOkBody(ResponseBody):
    type: Literal["topology_ok"] = "topology_ok"


class ErrorBody(ResponseBody):
    type: Literal["error"] = "error"
    code: int
    text: str


# ---------------------------------------------------------------------------
# Catch-all
# ---------------------------------------------------------------------------


class UnknownBody(Body):
    """Structurally valid body whose `type` is not in the catalog.

    Extra keys are kept so the message can be logged faithfully.
    """

    model_config = ConfigDict(extra="allow", strict=True, frozen=True)

    in_reply_to: Optional[int] = None


AnyRequestBody = Union[InitBody, EchoBody, GenerateBody, BroadcastBody, ReadBody, TopologyBody]
AnyResponseBody = Union[
    InitOkBody,
    EchoOkBody,
    GenerateOkBody,
    BroadcastOkBody,
    ReadOkBody,
    TopologyOkBody,
    ErrorBody,
]
AnyBody = Union[AnyRequestBody, AnyResponseBody, UnknownBody]


class Envelope(_WireModel):
    src: PeerId
    dest: PeerId
    body: AnyBody


def is_response(body: Body) -> bool:
    """Responses never reach request handlers; they resolve pending RPCs."""
    if isinstance(body, ResponseBody):
        return True
    return isinstance(body, UnknownBody) and body.in_reply_to is not None


def is_request(body: Body) -> bool:
    return isinstance(body, RequestBody)
