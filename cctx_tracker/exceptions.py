"""Cross-chain transaction tracking errors.

- Configuration errors are raised before any poll cycle starts
- Business failures (aborted or reverted CCTX) are reported with the tracked state
- Transient API errors never leave :py:mod:`cctx_tracker.api`
"""

from typing import Mapping


class CCTXTrackingError(Exception):
    """Base class for all tracker errors."""


class InvalidConfiguration(CCTXTrackingError):
    """Tracker was called with bad arguments.

    E.g. non-positive timeout or an unknown network name.
    """


class InvalidTransactionHash(InvalidConfiguration):
    """The root hash is not any hash format we can track."""


class TSSNotFound(InvalidConfiguration):
    """Could not resolve the TSS signer public key from ZetaChain."""


class InvalidTrackingState(CCTXTrackingError):
    """Tracking state was corrupted during a poll cycle."""


class CCTXAbortedOrReverted(CCTXTrackingError):
    """All tracked CCTXs reached a terminal status, but some of them failed."""

    def __init__(self, msg: str, cctxs: Mapping):
        super().__init__(msg)
        #: Hash -> status history at the moment of failure
        self.cctxs = cctxs


class MalformedResponse(Exception):
    """ZetaChain API returned JSON we could not interpret."""


class PollDeadlineExceeded(CCTXTrackingError):
    """A poll cycle was still waiting for ZetaChain when the tracking deadline passed.

    Raised by :py:func:`cctx_tracker.poll.run_poll_cycle`,
    :py:func:`cctx_tracker.tracker.track_cctx` turns it into a timeout result.
    """
