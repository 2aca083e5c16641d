from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional


Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def configure_logging(level_name: Optional[str] = None) -> None:
    """Configure stdlib logging for JSONL output on stderr.

    stdout carries the protocol, so nothing else may ever be written there.
    Safe to call multiple times.
    """
    level = getattr(logging, (level_name or "INFO").strip().upper(), logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_meshnode_configured", False):  # type: ignore[attr-defined]
        root.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(level)
    setattr(root, "_meshnode_configured", True)  # type: ignore[attr-defined]


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a single JSONL log event."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        parts = [f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())]
        logger.log(level, " ".join(parts))
