"""One poll cycle of the CCTX tracker.

A poll cycle refreshes everything we know about the tracked CCTXs:

1. Pending nonces of our TSS, for queue position estimates
2. Discovery of new CCTXs linked to the root hash and to every known CCTX
3. Latest status of every known CCTX

Network calls within a cycle run in parallel on a thread pool.
Their results are collected first and then applied to the state
one by one in a fixed order, so status change detection and
event emission always see a single consistent state.
The calling thread never waits for a response past the tracking deadline.
"""

import logging
import time
from concurrent.futures import Executor, Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Callable

from cctx_tracker.api import ZetaChainAPI
from cctx_tracker.completion import CompletionStatus, check_completion, get_tracked_status
from cctx_tracker.constants import SEARCH_SPINNER
from cctx_tracker.discovery import merge_discovered_hashes
from cctx_tracker.events import ProgressSink
from cctx_tracker.exceptions import InvalidTrackingState, PollDeadlineExceeded
from cctx_tracker.formatting import format_progress_text
from cctx_tracker.state import TrackingState, is_status_changed, validate_state
from cctx_tracker.types import CctxRecord, TrackedStatus

logger = logging.getLogger(__name__)

#: Never give a single HTTP request less than this, even close to the deadline
MIN_REQUEST_TIMEOUT = 0.5


@dataclass(slots=True)
class PollContext:
    """Everything a poll cycle needs besides the state."""

    api: ZetaChainAPI

    #: The hash the user asked us to track
    root_hash: str

    #: TSS public key resolved before polling started
    tss: str

    #: Runs HTTP requests of a cycle in parallel
    executor: Executor

    #: Monotonic clock timestamp when tracking gives up
    deadline: float

    sink: ProgressSink | None = None

    #: Machine readable output requested, do not emit progress events
    quiet: bool = False

    clock: Callable[[], float] = field(default=time.monotonic)

    def is_emitting(self) -> bool:
        return self.sink is not None and not self.quiet

    def get_remaining_seconds(self) -> float:
        return max(0.0, self.deadline - self.clock())

    def get_request_timeout(self) -> float:
        """HTTP timeout so that a request does not run far past the deadline."""
        return max(MIN_REQUEST_TIMEOUT, min(self.api.request_timeout, self.get_remaining_seconds()))


@dataclass(slots=True, frozen=True)
class PollCycleResult:
    """Outcome of one poll cycle."""

    state: TrackingState

    completion: CompletionStatus


def _wait(future: Future, ctx: PollContext):
    """Get a result of a network call, but do not wait past the deadline.

    :raise PollDeadlineExceeded:
        The call did not finish in time
    """
    try:
        return future.result(timeout=ctx.get_remaining_seconds())
    except FuturesTimeoutError as e:
        raise PollDeadlineExceeded(f"Network call still running at the deadline, root hash {ctx.root_hash}") from e


def _seed_from_root(state: TrackingState, ctx: PollContext) -> TrackingState:
    """Find the first CCTXs when we do not track anything yet.

    The root hash is either an inbound hash linking to CCTXs,
    or a CCTX index itself.
    """
    sink = ctx.sink
    timeout = ctx.get_request_timeout()

    if ctx.is_emitting() and not state.is_spinner_active(SEARCH_SPINNER):
        sink.search_started(f"Searching for transaction... ({ctx.get_remaining_seconds():.0f}s remaining)")
        state = state.with_spinner(SEARCH_SPINNER, True)

    indices = _wait(ctx.executor.submit(ctx.api.fetch_cctx_indices, ctx.root_hash, timeout=timeout), ctx)
    cctxs, spinners = merge_discovered_hashes(indices, state.cctxs, state.spinners, sink=sink, quiet=ctx.quiet)
    state = state.update(cctxs=cctxs, spinners=spinners)

    if len(state.cctxs) == 0:
        record = _wait(ctx.executor.submit(ctx.api.fetch_cctx, ctx.root_hash, timeout=timeout), ctx)
        if record is not None and ctx.root_hash not in state.cctxs:
            logger.info("Root hash %s is a CCTX index", ctx.root_hash)
            cctxs, spinners = merge_discovered_hashes([ctx.root_hash], state.cctxs, state.spinners, sink=sink, quiet=ctx.quiet)
            state = state.update(cctxs=cctxs, spinners=spinners)

    return state


def _discover_linked(state: TrackingState, ctx: PollContext, skip_root: bool) -> TrackingState:
    """Look for CCTXs spawned by the root hash and every tracked CCTX."""
    timeout = ctx.get_request_timeout()

    hashes = list(state.cctxs.keys())
    if not skip_root and ctx.root_hash not in state.cctxs:
        hashes.insert(0, ctx.root_hash)

    futures = {h: ctx.executor.submit(ctx.api.fetch_cctx_indices, h, timeout=timeout) for h in hashes}

    for tx_hash in hashes:
        indices = _wait(futures[tx_hash], ctx)
        cctxs, spinners = merge_discovered_hashes(indices, state.cctxs, state.spinners, sink=ctx.sink, quiet=ctx.quiet)
        state = state.update(cctxs=cctxs, spinners=spinners)

    return state


def _apply_status(state: TrackingState, ctx: PollContext, tx_hash: str, record: CctxRecord) -> TrackingState:
    """Append a status change to the history and tell the sink about it."""
    state = state.append_record(tx_hash, record)
    history = state.cctxs[tx_hash]
    text = format_progress_text(tx_hash, history, state.pending_nonces)

    logger.info("CCTX status changed %s", text)

    if not ctx.is_emitting() or not state.is_spinner_active(tx_hash):
        return state

    tracked = get_tracked_status(history)
    if tracked == TrackedStatus.mined:
        ctx.sink.succeeded(tx_hash, text)
        state = state.with_spinner(tx_hash, False)
    elif tracked == TrackedStatus.failed:
        ctx.sink.failed(tx_hash, text)
        state = state.with_spinner(tx_hash, False)
    else:
        ctx.sink.updated(tx_hash, text)

    return state


def _update_statuses(state: TrackingState, ctx: PollContext) -> TrackingState:
    """Fetch the latest status of every tracked CCTX."""
    timeout = ctx.get_request_timeout()
    hashes = list(state.cctxs.keys())
    futures = {h: ctx.executor.submit(ctx.api.fetch_cctx, h, timeout=timeout) for h in hashes}

    for tx_hash in hashes:
        record = _wait(futures[tx_hash], ctx)
        if record is None:
            continue

        if is_status_changed(state.cctxs[tx_hash], record):
            state = _apply_status(state, ctx, tx_hash, record)

    return state


def run_poll_cycle(state: TrackingState, ctx: PollContext) -> PollCycleResult:
    """Run one poll cycle.

    :param state:
        State after the previous cycle. Not modified.

    :param ctx:
        Tracking parameters

    :return:
        New state and the completion status evaluated over it

    :raise InvalidTrackingState:
        The resulting state failed validation

    :raise PollDeadlineExceeded:
        Tracking deadline passed while waiting for ZetaChain
    """
    state = state.increment_poll_count()

    logger.debug("Poll cycle %d for %s, tracking %d CCTXs", state.poll_count, ctx.root_hash, len(state.cctxs))

    if ctx.is_emitting() and state.is_spinner_active(SEARCH_SPINNER):
        ctx.sink.search_updated(f"Searching for transaction... ({ctx.get_remaining_seconds():.0f}s remaining)")

    nonces_future = ctx.executor.submit(ctx.api.fetch_pending_nonces, ctx.tss, timeout=ctx.get_request_timeout())

    seeded = False
    if len(state.cctxs) == 0:
        state = _seed_from_root(state, ctx)
        seeded = True

    state = _discover_linked(state, ctx, skip_root=seeded)

    state = state.with_pending_nonces(_wait(nonces_future, ctx))

    if len(state.cctxs) > 0:
        if ctx.is_emitting() and state.is_spinner_active(SEARCH_SPINNER):
            ctx.sink.search_ended("Transaction found")
            state = state.with_spinner(SEARCH_SPINNER, False)

        state = _update_statuses(state, ctx)

    if not validate_state(state):
        raise InvalidTrackingState(f"Invalid state detected during poll cycle {state.poll_count}: {state}")

    return PollCycleResult(state=state, completion=check_completion(state.cctxs))
