from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

import pytest

# Ensure local "src/" takes precedence over any globally-installed "meshnode" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from meshnode.runtime import metrics  # noqa: E402


class FakeTimer:
    def __init__(self, delay_s: float, fn: Callable[[], None]) -> None:
        self.delay_s = delay_s
        self.fn = fn
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Deterministic timer factory: nothing fires until the test says so."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, delay_s: float, fn: Callable[[], None]) -> FakeTimer:
        t = FakeTimer(delay_s, fn)
        self.timers.append(t)
        return t

    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> int:
        due = self.active()
        for t in due:
            t.fired = True
            t.fn()
        return len(due)


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()
