# src/meshnode/__main__.py
from __future__ import annotations

import logging

from meshnode.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so MESHNODE_* vars exist before anything reads them.
    load_dotenv_if_present()

    from meshnode.config import load_node_config
    from meshnode.net.net_logging import configure_logging, log_event
    from meshnode.net.node import Node
    from meshnode.net.transport_stdio import StdioTransport
    from meshnode.runtime.metrics import snapshot

    cfg = load_node_config()
    configure_logging(cfg.log_level)
    log = logging.getLogger("meshnode.main")

    node = Node(transport=StdioTransport(), cfg=cfg)
    log_event(log, "node_start", rpc_timeout_ms=cfg.rpc_timeout_ms)
    try:
        node.serve()
    except KeyboardInterrupt:
        pass
    finally:
        node.stop()
        if cfg.metrics_enabled:
            log_event(log, "metrics", **snapshot())
        log_event(log, "node_stop", node_id=node.node_id, next_msg_id=node.state.next_msg_id)


if __name__ == "__main__":
    main()
