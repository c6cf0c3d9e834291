"""Tracking state accumulated over poll cycles.

:py:class:`TrackingState` is immutable. Each update returns a new state
and leaves the previous value intact, so a poll cycle can compare
the state before and after partial updates.

Mappings are copied on write and exposed through read-only
:py:class:`types.MappingProxyType` views.
"""

import dataclasses
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from cctx_tracker.constants import SEARCH_SPINNER
from cctx_tracker.types import CctxRecord, PendingNonce


#: Hash -> ordered status history
CctxHistories = Mapping[str, tuple[CctxRecord, ...]]


def _freeze_cctxs(cctxs: Mapping[str, Iterable[CctxRecord]]) -> CctxHistories:
    return MappingProxyType({k: tuple(v) for k, v in cctxs.items()})


@dataclass(slots=True, frozen=True)
class TrackingState:
    """Everything we know about a tracking operation.

    Created once per :py:func:`cctx_tracker.tracker.track_cctx` call
    and discarded when tracking ends.
    """

    #: Hash -> status history.
    #:
    #: Key missing: hash not confirmed to be a CCTX.
    #: Empty history: CCTX known, status not fetched yet.
    cctxs: CctxHistories = field(default_factory=dict)

    #: Hash -> is a progress indicator active for this hash.
    #:
    #: Also holds ``"search"`` for the initial search indicator.
    spinners: Mapping[str, bool] = field(default_factory=dict)

    #: Latest pending nonce snapshot for our TSS, replaced every cycle
    pending_nonces: tuple[PendingNonce, ...] = ()

    #: How many poll cycles have been started
    poll_count: int = 0

    def __post_init__(self):
        # Do not share mutable containers with the caller
        object.__setattr__(self, "cctxs", _freeze_cctxs(self.cctxs))
        object.__setattr__(self, "spinners", MappingProxyType(dict(self.spinners)))
        object.__setattr__(self, "pending_nonces", tuple(self.pending_nonces))

    def update(self, **changes) -> "TrackingState":
        """Return a copy with some fields replaced."""
        return dataclasses.replace(self, **changes)

    def increment_poll_count(self) -> "TrackingState":
        return self.update(poll_count=self.poll_count + 1)

    def with_pending_nonces(self, pending_nonces: Iterable[PendingNonce]) -> "TrackingState":
        return self.update(pending_nonces=tuple(pending_nonces))

    def with_spinner(self, key: str, active: bool) -> "TrackingState":
        spinners = dict(self.spinners)
        spinners[key] = active
        return self.update(spinners=spinners)

    def append_record(self, tx_hash: str, record: CctxRecord) -> "TrackingState":
        """Add a new status observation to the end of a hash history."""
        cctxs = dict(self.cctxs)
        cctxs[tx_hash] = cctxs.get(tx_hash, ()) + (record,)
        return self.update(cctxs=cctxs)

    def is_spinner_active(self, key: str) -> bool:
        return self.spinners.get(key, False)

    def has_history(self) -> bool:
        """Have we seen a status for any CCTX."""
        return any(len(history) > 0 for history in self.cctxs.values())


def create_initial_state() -> TrackingState:
    return TrackingState()


def is_status_changed(history: tuple[CctxRecord, ...], record: CctxRecord) -> bool:
    """Should we append a freshly fetched record to a history.

    Same status twice in a row is not a change, even if the status message differs.
    """
    if not history:
        return True
    return history[-1].status != record.status


def validate_state(state: TrackingState) -> bool:
    """Check the tracking state shape is intact.

    - Maps and lists have correct types
    - History entries are :py:class:`CctxRecord`
    - Every active hash spinner refers to a tracked hash
    """
    if not isinstance(state, TrackingState):
        return False

    if not isinstance(state.cctxs, Mapping) or not isinstance(state.spinners, Mapping):
        return False

    if not isinstance(state.pending_nonces, tuple):
        return False

    if not all(isinstance(n, PendingNonce) for n in state.pending_nonces):
        return False

    if type(state.poll_count) != int or state.poll_count < 0:
        return False

    for tx_hash, history in state.cctxs.items():
        if not isinstance(history, tuple):
            return False
        if not all(isinstance(r, CctxRecord) for r in history):
            return False

    for key, active in state.spinners.items():
        if key == SEARCH_SPINNER:
            continue
        if active and key not in state.cctxs:
            return False

    return True
