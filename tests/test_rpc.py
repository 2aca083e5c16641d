from __future__ import annotations

from typing import List

import pytest

from meshnode.net.messages import BroadcastBody, BroadcastOkBody, Envelope, ErrorBody
from meshnode.net.rpc import RpcEngine
from meshnode.runtime.errors import DuplicateMsgIdError, MissingMsgIdError
from meshnode.runtime.metrics import get_counter


def _req(msg_id: int | None = 5, dest: str = "n2") -> Envelope:
    return Envelope(src="n1", dest=dest, body=BroadcastBody(msg_id=msg_id, message=7))


def _ack(in_reply_to: int, src: str = "n2") -> Envelope:
    return Envelope(src=src, dest="n1", body=BroadcastOkBody(msg_id=100, in_reply_to=in_reply_to))


def _engine(timers, sent: List[Envelope], timeout_ms: int = 1000) -> RpcEngine:
    return RpcEngine(send_fn=sent.append, timeout_ms=timeout_ms, timer_factory=timers)


def test_missing_msg_id_is_a_programming_error(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    with pytest.raises(MissingMsgIdError):
        eng.issue_request(_req(msg_id=None))
    assert sent == []
    assert eng.pending_count() == 0
    assert timers.timers == []


def test_issue_sends_once_and_arms_timer(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent, timeout_ms=1000)
    req = _req()
    fut = eng.issue_request(req)

    assert sent == [req]
    assert not fut.done()
    assert eng.is_pending(5)
    assert len(timers.active()) == 1
    assert timers.active()[0].delay_s == pytest.approx(1.0)


def test_timeout_resends_identical_envelope_until_resolved(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    req = _req()
    fut = eng.issue_request(req)

    for _ in range(3):
        assert timers.fire_all() == 1
    assert len(sent) == 4
    assert all(e is req for e in sent)
    assert eng.attempts(5) == 4
    assert get_counter("rpc_retry_total") == 3

    ack = _ack(5)
    assert eng.resolve(ack) is True
    assert fut.done()
    assert fut.result() is ack
    assert not eng.is_pending(5)

    # Resolution cancelled the armed timer; nothing else goes out.
    assert timers.fire_all() == 0
    assert len(sent) == 4


def test_resolution_wins_over_stale_timer(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    eng.issue_request(_req())
    first = timers.timers[0]

    timers.fire_all()
    assert len(sent) == 2

    # The superseded timer fires late: same msg_id, old generation.
    first.fn()
    assert len(sent) == 2

    eng.resolve(_ack(5))
    timers.timers[-1].fn()
    assert len(sent) == 2


def test_unmatched_response_is_dropped(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    eng.issue_request(_req(msg_id=1))

    assert eng.resolve(_ack(99)) is False
    assert eng.pending_count() == 1
    assert get_counter("rpc_unmatched_total") == 1

    # Duplicate ack after resolution.
    assert eng.resolve(_ack(1)) is True
    assert eng.resolve(_ack(1)) is False


def test_error_response_resolves_without_retry(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    fut = eng.issue_request(_req())

    rej = Envelope(src="n2", dest="n1", body=ErrorBody(in_reply_to=5, code=10, text="Unsupported request message"))
    assert eng.resolve(rej) is True
    assert fut.result().body.code == 10
    assert timers.fire_all() == 0
    assert len(sent) == 1


def test_callback_receives_response(timers) -> None:
    sent: List[Envelope] = []
    got: List[Envelope] = []
    eng = _engine(timers, sent)
    eng.issue_request(_req(), on_response=got.append)
    ack = _ack(5)
    eng.resolve(ack)
    assert got == [ack]


def test_independent_requests_resolve_independently(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    f1 = eng.issue_request(_req(msg_id=1, dest="n2"))
    f2 = eng.issue_request(_req(msg_id=2, dest="n3"))

    eng.resolve(_ack(1))
    assert f1.done() and not f2.done()

    timers.fire_all()
    assert [e.dest for e in sent] == ["n2", "n3", "n3"]


def test_duplicate_pending_msg_id_is_rejected(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    eng.issue_request(_req(msg_id=3))
    with pytest.raises(DuplicateMsgIdError):
        eng.issue_request(_req(msg_id=3))
    assert len(sent) == 1


def test_failed_send_is_still_retried(timers) -> None:
    calls: List[Envelope] = []

    def flaky_send(env: Envelope) -> None:
        calls.append(env)
        if len(calls) == 2:
            raise BrokenPipeError("gone")

    eng = RpcEngine(send_fn=flaky_send, timeout_ms=10, timer_factory=timers)
    eng.issue_request(_req())
    timers.fire_all()  # second send raises; logged, timer already re-armed
    timers.fire_all()
    assert len(calls) == 3
    assert eng.is_pending(5)


def test_close_cancels_everything(timers) -> None:
    sent: List[Envelope] = []
    eng = _engine(timers, sent)
    fut = eng.issue_request(_req())
    eng.close()

    assert fut.cancelled()
    assert eng.pending_count() == 0
    assert timers.active() == []
    timers.timers[0].fn()
    assert len(sent) == 1


def test_first_send_failure_does_not_escape_issue_request(timers) -> None:
    calls: List[Envelope] = []

    def broken_once(env: Envelope) -> None:
        calls.append(env)
        if len(calls) == 1:
            raise BrokenPipeError("gone")

    eng = RpcEngine(send_fn=broken_once, timeout_ms=10, timer_factory=timers)
    fut = eng.issue_request(_req())
    assert not fut.done()
    assert eng.is_pending(5)
    assert eng.attempts(5) == 1

    timers.fire_all()
    assert [c.body.msg_id for c in calls] == [5, 5]
    assert eng.resolve(_ack(5)) is True
