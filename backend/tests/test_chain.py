"""Sequential fallback, parallel branches and bounded fan-out."""
import threading
import time

import pytest

from clinic_notify.core.errors import ErrorCode
from clinic_notify.services.notifications.chain import TOPOLOGIES, run_fan_out, run_parallel, run_sequential
from clinic_notify.services.notifications.types import (
    AttemptResult,
    Channel,
    DeliveryStatus,
    NotificationType,
    Topology,
)


def _step(channel: Channel, sent: bool, calls: list | None = None):
    def run():
        if calls is not None:
            calls.append(channel)
        if sent:
            return AttemptResult(channel=channel, status=DeliveryStatus.SENT, provider_message_id="id")
        return AttemptResult(
            channel=channel, status=DeliveryStatus.FAILED, error_code=ErrorCode.PROVIDER_REJECTED, error_message="no"
        )

    return run


def test_every_type_has_a_topology():
    assert set(TOPOLOGIES) == set(NotificationType)
    assert TOPOLOGIES[NotificationType.RESERVATION_CONFIRMED] == Topology.PARALLEL


def test_sequential_stops_at_first_success():
    calls = []
    outcome = run_sequential([
        _step(Channel.BUSINESS_MESSAGE, sent=True, calls=calls),
        _step(Channel.SMS, sent=True, calls=calls),
    ])
    assert calls == [Channel.BUSINESS_MESSAGE]
    assert outcome.result == "BUSINESS_MESSAGE"


def test_sequential_falls_back_in_order():
    outcome = run_sequential([_step(Channel.BUSINESS_MESSAGE, sent=False), _step(Channel.SMS, sent=True)])
    assert [a.channel for a in outcome.attempts] == [Channel.BUSINESS_MESSAGE, Channel.SMS]
    assert outcome.result == "SMS"


def test_sequential_all_failed_reports_failed():
    outcome = run_sequential([_step(Channel.BUSINESS_MESSAGE, sent=False), _step(Channel.SMS, sent=False)])
    assert len(outcome.attempts) == 2
    assert outcome.result == "FAILED"
    assert not outcome.success


def test_parallel_branches_run_concurrently_and_keep_order():
    barrier = threading.Barrier(2, timeout=5)

    def waiting(channel):
        def run():
            barrier.wait()
            return AttemptResult(channel=channel, status=DeliveryStatus.SENT)

        return run

    push, message = run_parallel([[waiting(Channel.PUSH)], [waiting(Channel.BUSINESS_MESSAGE)]])
    assert push.result == "PUSH"
    assert message.result == "BUSINESS_MESSAGE"


def test_parallel_branch_that_raises_does_not_affect_the_other():
    def boom():
        raise RuntimeError("adapter blew up")

    push, message = run_parallel([[boom], [_step(Channel.BUSINESS_MESSAGE, sent=False), _step(Channel.SMS, sent=True)]])
    assert push.result == "FAILED"
    assert push.attempts == []
    assert message.result == "SMS"


def test_fan_out_counts_and_isolates_failures():
    def notify_one(rid: int) -> bool:
        if rid == 3:
            raise RuntimeError("lookup failed")
        return rid != 2

    result = run_fan_out([1, 2, 3, 4], notify_one, max_workers=2)
    assert (result.success, result.failed) == (2, 2)


def test_fan_out_notifies_each_recipient_once():
    seen = []
    lock = threading.Lock()

    def notify_one(rid):
        with lock:
            seen.append(rid)
        return True

    result = run_fan_out([5, 5, 6], notify_one, max_workers=4)
    assert sorted(seen) == [5, 6]
    assert result.to_dict() == {"success": 2, "failed": 0}


@pytest.mark.parametrize("max_workers", [1, 3])
def test_fan_out_respects_concurrency_bound(max_workers):
    active = 0
    peak = 0
    lock = threading.Lock()

    def notify_one(rid):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return True

    run_fan_out(range(10), notify_one, max_workers=max_workers)
    assert peak <= max_workers


def test_fan_out_empty():
    assert run_fan_out([], lambda rid: True, max_workers=4).to_dict() == {"success": 0, "failed": 0}
