"""Track a cross-chain transaction until all its CCTXs are finished.

Give a hash of a transaction on any connected chain, or a CCTX index,
and wait until every CCTX it spawned is mined, aborted or reverted.

Example::

    from cctx_tracker.events import ConsoleProgressSink
    from cctx_tracker.tracker import track_cctx

    result = track_cctx(
        "0x...",
        network="testnet",
        timeout=180,
        sink=ConsoleProgressSink(),
    )

    # Raises CCTXAbortedOrReverted if any CCTX failed
    result.raise_for_status()

    for cctx_hash, history in result.cctxs.items():
        print(cctx_hash, history[-1].status)
"""

import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from cctx_tracker.api import ZetaChainAPI
from cctx_tracker.completion import CompletionStatus
from cctx_tracker.constants import DEFAULT_MAX_WORKERS, DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, SEARCH_SPINNER
from cctx_tracker.events import BufferedProgressSink, ProgressSink
from cctx_tracker.exceptions import CCTXAbortedOrReverted, InvalidConfiguration, PollDeadlineExceeded, TSSNotFound
from cctx_tracker.poll import PollContext, run_poll_cycle
from cctx_tracker.state import CctxHistories, TrackingState, create_initial_state
from cctx_tracker.validation import validate_transaction_hash

logger = logging.getLogger(__name__)


class TrackingOutcome(enum.Enum):
    """How a tracking operation ended."""

    #: All CCTXs mined
    success = "success"

    #: All CCTXs terminal, some aborted or reverted
    failed = "failed"

    #: Deadline reached and no CCTX status was ever observed
    timed_out = "timed_out"

    #: Deadline reached with some CCTXs observed, but not all of them finished
    not_found = "not_found"

    #: Caller cancelled tracking
    cancelled = "cancelled"


@dataclass(slots=True, frozen=True)
class TrackingResult:
    """Final result of :py:func:`track_cctx`."""

    outcome: TrackingOutcome

    #: Hash -> status history.
    #:
    #: Empty when nothing was observed before the timeout.
    cctxs: CctxHistories

    #: How many poll cycles were run
    poll_count: int

    def is_success(self) -> bool:
        return self.outcome == TrackingOutcome.success

    def raise_for_status(self):
        """Raise if tracking ended in a business failure.

        Timeouts are not errors, check :py:attr:`outcome` for them.

        :raise CCTXAbortedOrReverted:
            Some CCTXs were aborted or reverted
        """
        if self.outcome == TrackingOutcome.failed:
            raise CCTXAbortedOrReverted("CCTX aborted or reverted", self.cctxs)


def _probe_existence(api: ZetaChainAPI, tx_hash: str, sink: ProgressSink | None, quiet: bool) -> bool:
    """Tell the user early if ZetaChain does not know the hash yet.

    Best effort only, a failure here never stops tracking.

    :return:
        True if the search indicator was started
    """
    try:
        found = api.fetch_cctx(tx_hash) is not None or len(api.fetch_cctx_indices(tx_hash)) > 0
    except Exception:
        logger.warning("Existence probe failed for %s", tx_hash, exc_info=True)
        return False

    if not found:
        logger.info("Transaction %s not found on ZetaChain yet", tx_hash)
        if sink is not None and not quiet:
            sink.search_started("Transaction not found yet, continuing to monitor...")
            return True

    return False


def _resolve_timeout(state: TrackingState, sink: ProgressSink | None, quiet: bool, timeout: float) -> TrackingResult:
    if not state.has_history():
        logger.info("No CCTX observed within %s seconds", timeout)
        if sink is not None and not quiet:
            sink.search_failed(f"Transaction not found within {timeout:.0f}s")
        return TrackingResult(outcome=TrackingOutcome.timed_out, cctxs={}, poll_count=state.poll_count)

    logger.warning("CCTXs did not finish within %s seconds: %s", timeout, ", ".join(state.cctxs.keys()))
    if sink is not None and not quiet:
        sink.search_failed("No transaction found")
    return TrackingResult(outcome=TrackingOutcome.not_found, cctxs=state.cctxs, poll_count=state.poll_count)


def track_cctx(
    tx_hash: str,
    api: ZetaChainAPI | None = None,
    network: str = "testnet",
    timeout: float = DEFAULT_TIMEOUT,
    sink: ProgressSink | None = None,
    quiet: bool = False,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel_event: threading.Event | None = None,
    probe: bool = True,
    clock: Callable[[], float] = time.monotonic,
) -> TrackingResult:
    """Poll ZetaChain until all CCTXs linked to a hash are finished.

    - Discovers CCTXs transitively: the root hash, CCTXs it spawned,
      CCTXs those spawned and so on

    - Poll cycles run one at a time on the calling thread,
      HTTP requests within a cycle run in a thread pool

    - Resolves exactly once: on completion, on timeout or on cancellation

    :param tx_hash:
        Inbound transaction hash on any connected chain, or a CCTX index

    :param api:
        ZetaChain API client. If not given, created for ``network``.

    :param network:
        ``mainnet`` or ``testnet``, used when ``api`` is not given

    :param timeout:
        Seconds to wait before giving up. Must be positive.

    :param sink:
        Receives progress events

    :param quiet:
        Do not emit any progress events, e.g. when the output is JSON

    :param poll_interval:
        Seconds between starts of poll cycles

    :param max_workers:
        Thread pool size for HTTP requests within a cycle

    :param cancel_event:
        Set this event from another thread to stop tracking

    :param probe:
        Check once whether the hash exists before polling starts

    :param clock:
        Monotonic clock, for testing

    :return:
        Tracking result. Check :py:attr:`TrackingResult.outcome`
        or call :py:meth:`TrackingResult.raise_for_status`.

    :raise InvalidConfiguration:
        Bad timeout, interval or network, invalid hash format or TSS not available

    :raise InvalidTrackingState:
        Internal state got corrupted
    """

    if not timeout or timeout <= 0:
        raise InvalidConfiguration(f"Timeout must be positive, got {timeout}")

    if poll_interval < 0:
        raise InvalidConfiguration(f"Poll interval must not be negative, got {poll_interval}")

    assert max_workers > 0, f"Bad max_workers {max_workers}"

    validate_transaction_hash(tx_hash)

    if api is None:
        api = ZetaChainAPI.create(network)

    tss = api.fetch_tss()
    if not tss:
        raise TSSNotFound(f"Could not resolve TSS public key from {api.api_url}")

    logger.info("Tracking %s on %s, TSS %s, timeout %s seconds", tx_hash, api.api_url, tss, timeout)

    search_started = probe and _probe_existence(api, tx_hash, sink, quiet)

    if cancel_event is None:
        cancel_event = threading.Event()

    started_at = clock()
    deadline = started_at + timeout
    state = create_initial_state()
    if search_started:
        state = state.with_spinner(SEARCH_SPINNER, True)

    # Events of a cycle reach the caller only if the cycle beats the deadline
    buffer = BufferedProgressSink() if sink is not None else None

    # Do not block on shutdown, a request stuck in retries past the deadline is abandoned
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cctx-tracker")
    try:
        ctx = PollContext(
            api=api,
            root_hash=tx_hash,
            tss=tss,
            executor=executor,
            deadline=deadline,
            sink=buffer,
            quiet=quiet,
            clock=clock,
        )

        while True:
            if cancel_event.is_set():
                logger.info("Tracking of %s cancelled after %d cycles", tx_hash, state.poll_count)
                return TrackingResult(outcome=TrackingOutcome.cancelled, cctxs=state.cctxs, poll_count=state.poll_count)

            cycle_started_at = clock()
            if cycle_started_at >= deadline:
                return _resolve_timeout(state, sink, quiet, timeout)

            try:
                result = run_poll_cycle(state, ctx)
            except PollDeadlineExceeded:
                logger.info("Poll cycle %d did not finish before the deadline, discarding its results", state.poll_count + 1)
                return _resolve_timeout(state, sink, quiet, timeout)

            if clock() >= deadline:
                # The deadline fired while the cycle was in flight
                logger.info("Poll cycle %d finished after the deadline, discarding its results", result.state.poll_count)
                return _resolve_timeout(state, sink, quiet, timeout)

            if buffer is not None:
                buffer.flush(sink)

            state = result.state

            if result.completion == CompletionStatus.successful:
                logger.info("All %d CCTXs of %s mined after %d cycles", len(state.cctxs), tx_hash, state.poll_count)
                if sink is not None and not quiet:
                    sink.all_mined(state.cctxs)
                return TrackingResult(outcome=TrackingOutcome.success, cctxs=state.cctxs, poll_count=state.poll_count)

            if result.completion == CompletionStatus.failed:
                logger.warning("CCTXs of %s aborted or reverted after %d cycles", tx_hash, state.poll_count)
                if sink is not None and not quiet:
                    sink.all_failed(state.cctxs)
                return TrackingResult(outcome=TrackingOutcome.failed, cctxs=state.cctxs, poll_count=state.poll_count)

            # Wait for the next tick, but not past the deadline
            next_tick = cycle_started_at + poll_interval
            wait = min(next_tick, deadline) - clock()
            if wait > 0:
                cancel_event.wait(wait)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
