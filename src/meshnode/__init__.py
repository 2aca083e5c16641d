"""meshnode: a single gossip/echo/unique-id node for a line-oriented JSON test harness."""

__version__ = "0.1.0"
