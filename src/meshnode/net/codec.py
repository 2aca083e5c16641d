# src/meshnode/net/codec.py
from __future__ import annotations

import json
from typing import Any, Dict, Type

from pydantic import ValidationError

from meshnode.net.messages import (
    AnyBody,
    Body,
    BroadcastBody,
    BroadcastOkBody,
    EchoBody,
    EchoOkBody,
    Envelope,
    ErrorBody,
    GenerateBody,
    GenerateOkBody,
    InitBody,
    InitOkBody,
    MsgType,
    ReadBody,
    ReadOkBody,
    TopologyBody,
    TopologyOkBody,
    UnknownBody,
)

Json = Dict[str, Any]

# Optional correlation fields are omitted from the wire when unset.
_OPTIONAL_WIRE_FIELDS = ("msg_id", "in_reply_to")


class WireDecodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class WireEncodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def dumps_json(obj: Any) -> bytes:
    try:
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise WireEncodeError("encode_failed", f"encode failed: {e}") from e


def loads_json(data: bytes | str) -> Any:
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise WireDecodeError("invalid_json", f"invalid json: {e}") from e
    except UnicodeDecodeError as e:
        raise WireDecodeError("invalid_utf8", f"invalid utf-8: {e}") from e


_BODY_REGISTRY: Dict[str, Type[Body]] = {
    MsgType.INIT.value: InitBody,
    MsgType.ECHO.value: EchoBody,
    MsgType.GENERATE.value: GenerateBody,
    MsgType.BROADCAST.value: BroadcastBody,
    MsgType.READ.value: ReadBody,
    MsgType.TOPOLOGY.value: TopologyBody,
    MsgType.INIT_OK.value: InitOkBody,
    MsgType.ECHO_OK.value: EchoOkBody,
    MsgType.GENERATE_OK.value: GenerateOkBody,
    MsgType.BROADCAST_OK.value: BroadcastOkBody,
    MsgType.READ_OK.value: ReadOkBody,
    MsgType.TOPOLOGY_OK.value: TopologyOkBody,
    MsgType.ERROR.value: ErrorBody,
}


def _coerce_peer(v: Any, field: str) -> str:
    if isinstance(v, str):
        return v
    raise WireDecodeError("invalid_envelope", f"Invalid envelope field '{field}': expected str, got {type(v).__name__}")


def _coerce_body(body_raw: Any) -> AnyBody:
    if not isinstance(body_raw, dict):
        raise WireDecodeError("missing_body", "Envelope missing 'body' object")

    tag = body_raw.get("type")
    if not isinstance(tag, str):
        raise WireDecodeError("invalid_message_type", f"Invalid message type field: {type(tag).__name__}")

    cls = _BODY_REGISTRY.get(tag, UnknownBody)
    try:
        return cls.model_validate(body_raw)  # type: ignore[return-value]
    except ValidationError as e:
        raise WireDecodeError("invalid_message_shape", f"Invalid '{tag}' body: {e.errors()}") from e


def decode_envelope(raw: Any) -> Envelope:
    """Validate an already-parsed JSON value as an Envelope."""
    if not isinstance(raw, dict):
        raise WireDecodeError("invalid_message", "wire message must be an object")

    src = _coerce_peer(raw.get("src"), "src")
    dest = _coerce_peer(raw.get("dest"), "dest")
    body = _coerce_body(raw.get("body"))
    return Envelope(src=src, dest=dest, body=body)


def decode_message(payload: bytes | str) -> Envelope:
    return decode_envelope(loads_json(payload))


def envelope_to_dict(env: Envelope) -> Json:
    body = env.body.model_dump(mode="json")
    for k in _OPTIONAL_WIRE_FIELDS:
        if body.get(k) is None:
            body.pop(k, None)
    return {"src": env.src, "dest": env.dest, "body": body}


def encode_message(env: Envelope) -> bytes:
    if not isinstance(env, Envelope):
        raise WireEncodeError("not_envelope", f"expected Envelope, got {type(env).__name__}")
    return dumps_json(envelope_to_dict(env))
