from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from meshnode.net.messages import ErrorBody


class ErrorCode(IntEnum):
    """Error codes understood by the test harness.

    Only NOT_SUPPORTED is produced by this node; the rest are listed so that
    inbound `error` bodies from peers can be logged by name.
    """

    TIMEOUT = 0
    NODE_NOT_FOUND = 1
    NOT_SUPPORTED = 10
    TEMPORARILY_UNAVAILABLE = 11
    MALFORMED_REQUEST = 12
    CRASH = 13
    ABORT = 14
    KEY_DOES_NOT_EXIST = 20
    KEY_ALREADY_EXISTS = 21
    PRECONDITION_FAILED = 22
    TXN_CONFLICT = 30


def error_name(code: int) -> str:
    try:
        return ErrorCode(code).name.lower()
    except ValueError:
        return f"unknown_{code}"


@dataclass
class ProtocolError(Exception):
    """A request the node rejects with an `error` reply."""

    code: int
    text: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.text}"
        return f"{self.code}:{self.text}:{self.details}"

    @staticmethod
    def not_supported(msg_type: str) -> "ProtocolError":
        return ProtocolError(int(ErrorCode.NOT_SUPPORTED), "Unsupported request message", details=msg_type)

    def to_body(self) -> ErrorBody:
        return ErrorBody(code=int(self.code), text=str(self.text))


class RpcError(RuntimeError):
    pass


class MissingMsgIdError(RpcError):
    """An outbound request was handed to the RPC engine without a msg_id."""


class DuplicateMsgIdError(RpcError):
    """An outbound request reused a msg_id that is still pending."""
