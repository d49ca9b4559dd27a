"""
Fallback chain execution: sequential steps, parallel branches, fan-out over recipients.

A step is a zero-arg callable that performs one channel attempt (send + log) and
returns its AttemptResult. The chain only decides which steps run and in what order.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Sequence

from clinic_notify.services.notifications.types import (
    AttemptResult,
    BranchOutcome,
    FanOutResult,
    NotificationType,
    Topology,
)

logger = logging.getLogger(__name__)

Step = Callable[[], AttemptResult]

TOPOLOGIES: dict[NotificationType, Topology] = {
    NotificationType.RESERVATION_CONFIRMED: Topology.PARALLEL,
    NotificationType.RESERVATION_CANCELLED: Topology.PUSH_ONLY,
    NotificationType.RESERVATION_REMINDER: Topology.PUSH_ONLY,
    NotificationType.REVIEW_REQUEST: Topology.PUSH_ONLY,
    NotificationType.NEW_RESERVATION: Topology.PUSH_ONLY,
    NotificationType.NEW_REVIEW: Topology.PUSH_ONLY,
    NotificationType.UNANSWERED_CHAT: Topology.PUSH_ONLY,
}


def run_sequential(steps: Sequence[Step]) -> BranchOutcome:
    """Run steps in order until one is SENT. Steps after the first success never run."""
    outcome = BranchOutcome()
    for step in steps:
        attempt = step()
        outcome.attempts.append(attempt)
        if attempt.sent:
            break
    return outcome


def run_parallel(branches: Sequence[Sequence[Step]]) -> list[BranchOutcome]:
    """
    Run each branch (a sequential chain) on its own thread and join them all before returning.
    Results come back in the order the branches were given. A branch that raises comes back
    as a failed BranchOutcome with whatever it had not reported; the other branches are unaffected.
    """
    if not branches:
        return []
    results: list[BranchOutcome | None] = [None] * len(branches)
    with ThreadPoolExecutor(max_workers=len(branches)) as executor:
        future_to_index = {executor.submit(run_sequential, steps): i for i, steps in enumerate(branches)}
        for future in as_completed(future_to_index):
            i = future_to_index[future]
            try:
                results[i] = future.result()
            except Exception as e:
                logger.exception("Chain branch %s raised: %s", i, e)
                results[i] = BranchOutcome()
    return [r if r is not None else BranchOutcome() for r in results]


def run_fan_out(
    recipient_ids: Iterable[int],
    notify_one: Callable[[int], bool],
    *,
    max_workers: int,
) -> FanOutResult:
    """
    Call notify_one for each distinct recipient with at most max_workers in flight.
    notify_one returns True when the recipient got the notification on any channel.
    An exception for one recipient is logged and counted as failed; the rest continue.
    """
    ids = list(dict.fromkeys(recipient_ids))
    if not ids:
        return FanOutResult()
    success = failed = 0
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(ids)))) as executor:
        future_to_id = {executor.submit(notify_one, rid): rid for rid in ids}
        for future in as_completed(future_to_id):
            rid = future_to_id[future]
            try:
                ok = future.result()
            except Exception as e:
                logger.exception("Fan-out notify failed for recipient %s: %s", rid, e)
                ok = False
            if ok:
                success += 1
            else:
                failed += 1
    return FanOutResult(success=success, failed=failed)
