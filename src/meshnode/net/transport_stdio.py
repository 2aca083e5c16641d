from __future__ import annotations

import sys
import threading
from typing import Iterator, Optional, TextIO


class StdioTransport:
    """
    One JSON value per line over stdin/stdout.

    - Writes are serialised so retries fired from timer threads never
      interleave with handler output.
    - recv() ends at EOF or after close().
    """

    def __init__(self, *, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._in = stdin if stdin is not None else sys.stdin
        self._out = stdout if stdout is not None else sys.stdout
        self._write_lock = threading.Lock()
        self._closed = False

    def send(self, payload: bytes) -> None:
        line = payload.decode("utf-8")
        with self._write_lock:
            if self._closed:
                return
            self._out.write(line + "\n")
            self._out.flush()

    def recv(self) -> Iterator[str]:
        for line in self._in:
            if self._closed:
                return
            line = line.strip()
            if not line:
                continue
            yield line

    def close(self) -> None:
        with self._write_lock:
            self._closed = True
