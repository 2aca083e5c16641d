# src/meshnode/env.py
"""
.env support for the node process.

The node is usually launched by a harness that passes no arguments, so the
MESHNODE_* settings read by meshnode.config may come from a dotenv file next
to the binary. Values already in the environment always win.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from meshnode.net.net_logging import log_event

DOTENV_PATH_VAR = "MESHNODE_DOTENV_PATH"

_attempted = False


def resolve_dotenv_path(dotenv_path: Optional[str] = None) -> Path:
    """Explicit argument, then $MESHNODE_DOTENV_PATH, then ./.env."""
    raw = dotenv_path or os.getenv(DOTENV_PATH_VAR) or ".env"
    return Path(raw).expanduser()


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """Apply MESHNODE settings from a dotenv file, once per process.

    Returns True only when a file was found and read.
    """
    global _attempted
    if _attempted:
        return False
    _attempted = True

    path = resolve_dotenv_path(dotenv_path)
    if not path.is_file():
        return False

    applied = []
    for key, value in dotenv_values(path).items():
        # bare "KEY" lines carry no value
        if value is None or key in os.environ:
            continue
        os.environ[key] = value
        applied.append(key)

    log_event(logging.getLogger("meshnode.env"), "dotenv_loaded", level=logging.DEBUG, path=str(path), keys=sorted(applied))
    return True


def _reset_for_tests() -> None:
    global _attempted
    _attempted = False
