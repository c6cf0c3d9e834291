"""Shared fixtures for CCTX tracker tests.

Most tests run against :py:class:`FakeZetaChainAPI`, a scripted
in-memory stand-in for ZetaChain LCD API.
"""

import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from cctx_tracker.events import ProgressSink
from cctx_tracker.types import CctxRecord, PendingNonce

#: Sepolia
SENDER_CHAIN_ID = "11155111"

#: ZetaChain Athens
RECEIVER_CHAIN_ID = "7001"

TEST_TSS = "zetapub1addwnpepqtest"

ROOT_HASH = "0x" + "ab" * 32
CCTX_1 = "0x" + "01" * 32
CCTX_2 = "0x" + "02" * 32


class FakeZetaChainAPI:
    """Scripted ZetaChain API.

    - ``statuses``: hash -> list of statuses. The status moves forward
      once per poll cycle and the last one repeats forever.
    - ``indices``: hash -> CCTX indices linked to it
    - Poll cycles are counted by :py:meth:`fetch_pending_nonces` calls,
      which the tracker makes exactly once per cycle
    """

    def __init__(self, statuses: dict = None, indices: dict = None, tss: str | None = TEST_TSS, pending_nonces: list = None, outbound_nonce: int = 5):
        self.api_url = "http://zetachain.invalid"
        self.request_timeout = 10.0
        self.statuses = statuses or {}
        self.indices = indices or {}
        self.tss = tss
        self.pending_nonces = pending_nonces or []
        self.outbound_nonce = outbound_nonce
        self.cycle = 0
        self.calls = Counter()
        self.lock = threading.Lock()

    def _count(self, name: str):
        with self.lock:
            self.calls[name] += 1

    def make_record(self, status: str) -> CctxRecord:
        return CctxRecord(
            outbound_hash="",
            outbound_nonce=self.outbound_nonce,
            sender_chain_id=SENDER_CHAIN_ID,
            receiver_chain_id=RECEIVER_CHAIN_ID,
            status=status,
            status_message="",
        )

    def fetch_cctx(self, tx_hash, timeout=None):
        self._count("fetch_cctx")
        sequence = self.statuses.get(tx_hash)
        if not sequence:
            return None
        position = min(max(self.cycle - 1, 0), len(sequence) - 1)
        return self.make_record(sequence[position])

    def fetch_cctx_indices(self, tx_hash, timeout=None):
        self._count("fetch_cctx_indices")
        return list(self.indices.get(tx_hash, []))

    def fetch_tss(self, timeout=None):
        self._count("fetch_tss")
        return self.tss

    def fetch_pending_nonces(self, tss, timeout=None):
        self._count("fetch_pending_nonces")
        with self.lock:
            self.cycle += 1
        return [n for n in self.pending_nonces if n.tss == tss]


class RecordingSink(ProgressSink):
    """Collect progress events as (event name, argument) tuples."""

    def __init__(self):
        self.events = []

    def discovered(self, tx_hash):
        self.events.append(("discovered", tx_hash))

    def updated(self, tx_hash, text):
        self.events.append(("updated", tx_hash, text))

    def succeeded(self, tx_hash, text):
        self.events.append(("succeeded", tx_hash, text))

    def failed(self, tx_hash, text):
        self.events.append(("failed", tx_hash, text))

    def search_started(self, text):
        self.events.append(("search_started", text))

    def search_updated(self, text):
        self.events.append(("search_updated", text))

    def search_ended(self, text):
        self.events.append(("search_ended", text))

    def search_failed(self, text):
        self.events.append(("search_failed", text))

    def all_mined(self, cctxs):
        self.events.append(("all_mined", dict(cctxs)))

    def all_failed(self, cctxs):
        self.events.append(("all_failed", dict(cctxs)))

    def get_hash_events(self) -> list[tuple]:
        """Per-CCTX events only, without the text."""
        return [(e[0], e[1]) for e in self.events if e[0] in ("discovered", "updated", "succeeded", "failed")]

    def get_event_names(self) -> list[str]:
        return [e[0] for e in self.events]


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def executor():
    """Thread pool for running poll cycles directly."""
    with ThreadPoolExecutor(max_workers=4) as executor:
        yield executor


@pytest.fixture()
def fake_api_factory():
    """Create scripted APIs in tests."""
    return FakeZetaChainAPI


@pytest.fixture()
def pending_nonce() -> PendingNonce:
    """Outbound queue for the receiver chain, two transactions ahead of ours."""
    return PendingNonce(chain_id=RECEIVER_CHAIN_ID, nonce_low=3, nonce_high=10, tss=TEST_TSS)
