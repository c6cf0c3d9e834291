"""Progress notifications while tracking cross-chain transactions.

The tracker calls a :py:class:`ProgressSink` whenever something
user visible happens. Tracking works the same with or without a sink.

- :py:class:`ProgressSink` does nothing, subclass and override what you need
- :py:class:`LoggingProgressSink` writes events to Python logging
- :py:class:`ConsoleProgressSink` prints one line per event for terminal users
- :py:class:`BufferedProgressSink` holds events of a poll cycle until it is accepted
"""

import logging
import sys
from typing import Mapping, Sequence, TextIO

from cctx_tracker.formatting import shorten_hash
from cctx_tracker.types import CctxRecord

logger = logging.getLogger(__name__)


#: Hash -> status history, as passed to the final callbacks
CctxHistories = Mapping[str, Sequence[CctxRecord]]


class ProgressSink:
    """Receive tracking progress events.

    All methods are no-ops. Methods are called from the tracking thread only.
    """

    def discovered(self, tx_hash: str):
        """A new CCTX was found and is now being tracked."""

    def updated(self, tx_hash: str, text: str):
        """A CCTX moved to a new non-terminal status."""

    def succeeded(self, tx_hash: str, text: str):
        """A CCTX outbound transaction was mined."""

    def failed(self, tx_hash: str, text: str):
        """A CCTX was aborted or reverted."""

    def search_started(self, text: str):
        pass

    def search_updated(self, text: str):
        pass

    def search_ended(self, text: str):
        pass

    def search_failed(self, text: str):
        pass

    def all_mined(self, cctxs: CctxHistories):
        """All tracked CCTXs were mined successfully."""

    def all_failed(self, cctxs: CctxHistories):
        """All tracked CCTXs are terminal, some of them aborted or reverted."""


class LoggingProgressSink(ProgressSink):
    """Write progress events to a logger.

    Useful for long running services where nobody watches the terminal.
    """

    def __init__(self, log: logging.Logger = logger, level: int = logging.INFO):
        self.log = log
        self.level = level

    def discovered(self, tx_hash: str):
        self.log.log(self.level, "Tracking CCTX %s", tx_hash)

    def updated(self, tx_hash: str, text: str):
        self.log.log(self.level, "CCTX update %s", text)

    def succeeded(self, tx_hash: str, text: str):
        self.log.log(self.level, "CCTX mined %s", text)

    def failed(self, tx_hash: str, text: str):
        self.log.warning("CCTX failed %s", text)

    def search_started(self, text: str):
        self.log.log(self.level, text)

    def search_updated(self, text: str):
        self.log.debug(text)

    def search_ended(self, text: str):
        self.log.log(self.level, text)

    def search_failed(self, text: str):
        self.log.warning(text)

    def all_mined(self, cctxs: CctxHistories):
        self.log.log(self.level, "All %d CCTXs mined", len(cctxs))

    def all_failed(self, cctxs: CctxHistories):
        self.log.warning("CCTXs finished, but some were aborted or reverted: %s", ", ".join(cctxs.keys()))


class ConsoleProgressSink(ProgressSink):
    """Print progress to a terminal.

    Each event is a single line prefixed with a status marker.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def _print(self, marker: str, text: str):
        print(f"{marker} {text}", file=self.stream, flush=True)

    def discovered(self, tx_hash: str):
        self._print("…", f"Transaction: {shorten_hash(tx_hash)}")

    def updated(self, tx_hash: str, text: str):
        self._print("…", text)

    def succeeded(self, tx_hash: str, text: str):
        self._print("✔", text)

    def failed(self, tx_hash: str, text: str):
        self._print("✖", text)

    def search_started(self, text: str):
        self._print("…", text)

    def search_ended(self, text: str):
        self._print("✔", text)

    def search_failed(self, text: str):
        self._print("✖", text)


class BufferedProgressSink(ProgressSink):
    """Hold events back until they are flushed to another sink.

    The tracker runs each poll cycle against this sink and forwards
    the events only when the cycle finished before the deadline.
    Events of a discarded cycle are never seen by the caller.
    """

    def __init__(self):
        #: (method name, arguments) in emission order
        self.events: list[tuple[str, tuple]] = []

    def _record(self, name: str, *args):
        self.events.append((name, args))

    def discovered(self, tx_hash: str):
        self._record("discovered", tx_hash)

    def updated(self, tx_hash: str, text: str):
        self._record("updated", tx_hash, text)

    def succeeded(self, tx_hash: str, text: str):
        self._record("succeeded", tx_hash, text)

    def failed(self, tx_hash: str, text: str):
        self._record("failed", tx_hash, text)

    def search_started(self, text: str):
        self._record("search_started", text)

    def search_updated(self, text: str):
        self._record("search_updated", text)

    def search_ended(self, text: str):
        self._record("search_ended", text)

    def search_failed(self, text: str):
        self._record("search_failed", text)

    def all_mined(self, cctxs: CctxHistories):
        self._record("all_mined", cctxs)

    def all_failed(self, cctxs: CctxHistories):
        self._record("all_failed", cctxs)

    def clear(self):
        self.events = []

    def flush(self, target: ProgressSink):
        """Replay held events on ``target`` and forget them."""
        events = self.events
        self.clear()
        for name, args in events:
            getattr(target, name)(*args)
