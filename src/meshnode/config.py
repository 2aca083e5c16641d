from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_RPC_TIMEOUT_MS = 1000


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except Exception:
        return int(default)


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.environ.get(name, "")).strip().lower()
    if not raw:
        return bool(default)
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True, slots=True)
class NodeConfig:
    rpc_timeout_ms: int = DEFAULT_RPC_TIMEOUT_MS
    log_level: str = "INFO"
    metrics_enabled: bool = False


def load_node_config() -> NodeConfig:
    rpc_timeout_ms = max(1, _env_int("MESHNODE_RPC_TIMEOUT_MS", DEFAULT_RPC_TIMEOUT_MS))
    log_level = (os.environ.get("MESHNODE_LOG_LEVEL") or "INFO").strip().upper() or "INFO"
    metrics_enabled = _env_bool("MESHNODE_METRICS_ENABLED", False)
    return NodeConfig(
        rpc_timeout_ms=int(rpc_timeout_ms),
        log_level=str(log_level),
        metrics_enabled=bool(metrics_enabled),
    )
