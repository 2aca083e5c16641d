# src/meshnode/net/__init__.py
"""
meshnode: network package

  - messages: wire schemas (strict pydantic models)
  - codec: JSON encoding/decoding + envelope validation
  - router: dispatch by body type
  - gossip: broadcast dedup + fanout
  - rpc: correlation and retry for originated requests
  - transport / transport_stdio / transport_memory: I/O backends
  - node: wiring of all of the above
"""

from __future__ import annotations

__all__ = [
    "messages",
    "codec",
    "router",
    "gossip",
    "rpc",
    "transport",
    "transport_stdio",
    "transport_memory",
    "node",
]
