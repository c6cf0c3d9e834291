"""Decide when all tracked CCTXs are done."""

import enum
from typing import Mapping, Sequence

from cctx_tracker.types import FAILED_STATUSES, CctxRecord, CctxStatus, TrackedStatus


class CompletionStatus(enum.Enum):
    """Overall state of a tracking operation."""

    #: Nothing tracked yet, or something still in flight
    incomplete = "incomplete"

    #: Every tracked CCTX was mined
    successful = "successful"

    #: Every tracked CCTX is terminal, at least one aborted or reverted
    failed = "failed"

    def is_complete(self) -> bool:
        return self != CompletionStatus.incomplete


def get_tracked_status(history: Sequence[CctxRecord]) -> TrackedStatus:
    """Map the last observed status of a CCTX to its lifecycle state."""
    if not history:
        return TrackedStatus.unknown

    status = history[-1].status
    if status == CctxStatus.outbound_mined:
        return TrackedStatus.mined
    elif status in FAILED_STATUSES:
        return TrackedStatus.failed
    return TrackedStatus.pending


def check_completion(cctxs: Mapping[str, Sequence[CctxRecord]]) -> CompletionStatus:
    """Check if all tracked CCTXs have reached a terminal status.

    :param cctxs:
        Hash -> status history

    :return:
        Incomplete until every CCTX is mined, aborted or reverted
    """
    if len(cctxs) == 0:
        return CompletionStatus.incomplete

    statuses = [get_tracked_status(history) for history in cctxs.values()]

    if any(s in (TrackedStatus.unknown, TrackedStatus.pending) for s in statuses):
        return CompletionStatus.incomplete

    if all(s == TrackedStatus.mined for s in statuses):
        return CompletionStatus.successful

    return CompletionStatus.failed
