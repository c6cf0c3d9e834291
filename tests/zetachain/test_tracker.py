"""End-to-end tracking tests against a scripted ZetaChain API."""

import threading
import time

import pytest

from cctx_tracker.exceptions import CCTXAbortedOrReverted, InvalidConfiguration, InvalidTransactionHash, TSSNotFound
from cctx_tracker.tracker import TrackingOutcome, track_cctx

ROOT_HASH = "0x" + "ab" * 32
CCTX_1 = "0x" + "01" * 32
CCTX_2 = "0x" + "02" * 32


class ManualClock:
    """Monotonic clock we move by hand."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_track_until_mined(fake_api_factory, sink):
    """Deposit goes through pending statuses and gets mined."""
    api = fake_api_factory(
        indices={ROOT_HASH: [CCTX_1]},
        statuses={CCTX_1: ["PendingOutbound", "PendingOutbound", "OutboundMined"]},
    )
    result = track_cctx(ROOT_HASH, api=api, timeout=10, sink=sink, poll_interval=0, probe=False)

    assert result.outcome == TrackingOutcome.success
    assert result.is_success()
    assert [r.status for r in result.cctxs[CCTX_1]] == ["PendingOutbound", "OutboundMined"]

    # No polling after resolution
    assert result.poll_count == 3
    assert api.calls["fetch_pending_nonces"] == 3

    assert sink.get_hash_events() == [
        ("discovered", CCTX_1),
        ("updated", CCTX_1),
        ("succeeded", CCTX_1),
    ]
    assert sink.events[-1][0] == "all_mined"
    assert list(sink.events[-1][1].keys()) == [CCTX_1]

    # Does not raise
    result.raise_for_status()


def test_track_reverted(fake_api_factory, sink):
    """One of two CCTXs reverts."""
    api = fake_api_factory(
        indices={ROOT_HASH: [CCTX_1, CCTX_2]},
        statuses={CCTX_1: ["OutboundMined"], CCTX_2: ["Reverted"]},
    )
    result = track_cctx(ROOT_HASH, api=api, timeout=10, sink=sink, poll_interval=0, probe=False)

    assert result.outcome == TrackingOutcome.failed
    assert not result.is_success()
    assert sink.events[-1][0] == "all_failed"
    assert set(sink.events[-1][1].keys()) == {CCTX_1, CCTX_2}
    assert ("succeeded", CCTX_1) in sink.get_hash_events()
    assert ("failed", CCTX_2) in sink.get_hash_events()

    with pytest.raises(CCTXAbortedOrReverted) as exc_info:
        result.raise_for_status()

    assert set(exc_info.value.cctxs.keys()) == {CCTX_1, CCTX_2}


def test_track_chained_cctxs(fake_api_factory):
    """A CCTX spawning another CCTX is tracked until both finish."""
    api = fake_api_factory(
        indices={ROOT_HASH: [CCTX_1], CCTX_1: [CCTX_2]},
        statuses={CCTX_1: ["OutboundMined"], CCTX_2: ["PendingOutbound", "OutboundMined"]},
    )
    result = track_cctx(ROOT_HASH, api=api, timeout=10, poll_interval=0, probe=False)
    assert result.outcome == TrackingOutcome.success
    assert list(result.cctxs.keys()) == [CCTX_1, CCTX_2]
    assert result.cctxs[CCTX_2][-1].status == "OutboundMined"


def test_track_cctx_index(fake_api_factory):
    """The hash given is a CCTX index, not an inbound hash."""
    api = fake_api_factory(statuses={ROOT_HASH: ["PendingInbound", "OutboundMined"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=10, poll_interval=0, probe=False)
    assert result.outcome == TrackingOutcome.success
    assert [r.status for r in result.cctxs[ROOT_HASH]] == ["PendingInbound", "OutboundMined"]


def test_invalid_hash_makes_no_requests(fake_api_factory):
    api = fake_api_factory()
    with pytest.raises(InvalidTransactionHash):
        track_cctx("not-a-hash", api=api, timeout=10)
    assert sum(api.calls.values()) == 0


@pytest.mark.parametrize("timeout", [0, -1])
def test_bad_timeout(fake_api_factory, timeout):
    api = fake_api_factory()
    with pytest.raises(InvalidConfiguration):
        track_cctx(ROOT_HASH, api=api, timeout=timeout)
    assert sum(api.calls.values()) == 0


def test_negative_poll_interval(fake_api_factory):
    with pytest.raises(InvalidConfiguration):
        track_cctx(ROOT_HASH, api=fake_api_factory(), timeout=10, poll_interval=-1)


def test_tss_not_available(fake_api_factory):
    """Without TSS we cannot estimate queue positions, refuse to start."""
    api = fake_api_factory(tss=None)
    with pytest.raises(TSSNotFound):
        track_cctx(ROOT_HASH, api=api, timeout=10)

    # TSSNotFound is a configuration error for callers catching broadly
    assert issubclass(TSSNotFound, InvalidConfiguration)
    assert api.calls["fetch_pending_nonces"] == 0


def test_nothing_found_times_out(fake_api_factory, sink):
    api = fake_api_factory()
    result = track_cctx(ROOT_HASH, api=api, timeout=0.3, sink=sink, poll_interval=0.05, probe=False)
    assert result.outcome == TrackingOutcome.timed_out
    assert result.cctxs == {}
    assert result.poll_count >= 1
    assert sink.events[-1] == ("search_failed", "Transaction not found within 0s")

    # Timeouts are not business failures
    result.raise_for_status()


def test_unfinished_cctx_times_out_with_partial_result(fake_api_factory, sink):
    api = fake_api_factory(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["PendingOutbound"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=0.3, sink=sink, poll_interval=0.05, probe=False)
    assert result.outcome == TrackingOutcome.not_found
    assert [r.status for r in result.cctxs[CCTX_1]] == ["PendingOutbound"]
    assert sink.events[-1] == ("search_failed", "No transaction found")


def test_cycle_finishing_after_deadline_is_discarded(fake_api_factory):
    """A slow cycle must not resolve tracking after the timeout fired."""
    clock = ManualClock()

    class SlowAPI(fake_api_factory):
        def fetch_pending_nonces(self, tss, timeout=None):
            clock.now += 100
            return super().fetch_pending_nonces(tss, timeout=timeout)

    api = SlowAPI(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["OutboundMined"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=10, poll_interval=0, probe=False, clock=clock)
    assert result.outcome == TrackingOutcome.timed_out
    assert result.cctxs == {}
    assert result.poll_count == 0


def test_events_of_discarded_cycle_are_not_delivered(fake_api_factory, sink):
    """The caller never hears about a CCTX from a cycle that lost the race with the deadline."""
    clock = ManualClock()

    class SlowAPI(fake_api_factory):
        def fetch_pending_nonces(self, tss, timeout=None):
            clock.now += 100
            return super().fetch_pending_nonces(tss, timeout=timeout)

    api = SlowAPI(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["OutboundMined"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=10, sink=sink, poll_interval=0, probe=False, clock=clock)
    assert result.outcome == TrackingOutcome.timed_out
    assert sink.events == [("search_failed", "Transaction not found within 10s")]


def test_stuck_request_does_not_delay_timeout(fake_api_factory, sink):
    """A request hanging in HTTP retries is abandoned at the deadline."""
    release = threading.Event()

    class StuckAPI(fake_api_factory):
        def fetch_pending_nonces(self, tss, timeout=None):
            release.wait(10)
            return super().fetch_pending_nonces(tss, timeout=timeout)

    api = StuckAPI(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["OutboundMined"]})
    started_at = time.monotonic()
    try:
        result = track_cctx(ROOT_HASH, api=api, timeout=0.3, sink=sink, poll_interval=0, probe=False)
        elapsed = time.monotonic() - started_at
    finally:
        release.set()

    assert result.outcome == TrackingOutcome.timed_out
    assert elapsed < 5
    assert sink.get_event_names() == ["search_failed"]


def test_cancelled_before_start(fake_api_factory, sink):
    api = fake_api_factory(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["OutboundMined"]})
    cancel_event = threading.Event()
    cancel_event.set()
    result = track_cctx(ROOT_HASH, api=api, timeout=10, sink=sink, cancel_event=cancel_event, probe=False)
    assert result.outcome == TrackingOutcome.cancelled
    assert result.poll_count == 0
    assert api.calls["fetch_pending_nonces"] == 0
    assert sink.events == []


def test_cancelled_while_waiting(fake_api_factory):
    """Cancel from another thread interrupts the wait between cycles."""
    api = fake_api_factory(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["PendingOutbound"]})
    cancel_event = threading.Event()
    timer = threading.Timer(0.2, cancel_event.set)
    timer.start()
    try:
        result = track_cctx(ROOT_HASH, api=api, timeout=30, poll_interval=0.05, cancel_event=cancel_event, probe=False)
    finally:
        timer.cancel()

    assert result.outcome == TrackingOutcome.cancelled
    assert [r.status for r in result.cctxs[CCTX_1]] == ["PendingOutbound"]


def test_quiet_mode(fake_api_factory, sink):
    """Quiet mode is used for JSON output, no progress events."""
    api = fake_api_factory(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["PendingOutbound", "OutboundMined"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=10, sink=sink, quiet=True, poll_interval=0)
    assert result.outcome == TrackingOutcome.success
    assert sink.events == []


def test_probe_reports_unknown_hash(fake_api_factory, sink):
    """User is told early when ZetaChain does not know the hash yet."""
    api = fake_api_factory()
    track_cctx(ROOT_HASH, api=api, timeout=0.2, sink=sink, poll_interval=0.05)
    assert sink.events[0] == ("search_started", "Transaction not found yet, continuing to monitor...")

    # Polling continues the same search indicator instead of starting another one
    names = sink.get_event_names()
    assert names.count("search_started") == 1
    assert names[1] == "search_updated"
    assert names[-1] == "search_failed"


def test_probe_failure_does_not_stop_tracking(fake_api_factory, caplog):
    class FlakyAPI(fake_api_factory):
        probed = False

        def fetch_cctx(self, tx_hash, timeout=None):
            if not self.probed:
                self.probed = True
                raise RuntimeError("Probe exploded")
            return super().fetch_cctx(tx_hash, timeout=timeout)

    api = FlakyAPI(indices={ROOT_HASH: [CCTX_1]}, statuses={CCTX_1: ["OutboundMined"]})
    result = track_cctx(ROOT_HASH, api=api, timeout=10, poll_interval=0)
    assert result.outcome == TrackingOutcome.success
    assert "Existence probe failed" in caplog.text
