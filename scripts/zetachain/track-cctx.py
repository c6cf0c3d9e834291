"""Track a ZetaChain cross-chain transaction from the command line.

Follows an inbound transaction (or a CCTX index) through ZetaChain
until every CCTX it spawned is mined, aborted or reverted.

Usage:

.. code-block:: shell

    # Track a testnet deposit
    TX_HASH=0x... python scripts/zetachain/track-cctx.py

    # Mainnet, wait up to 5 minutes
    NETWORK=mainnet TIMEOUT=300 TX_HASH=0x... python scripts/zetachain/track-cctx.py

    # Print only the final status histories as JSON
    JSON_OUTPUT=true TX_HASH=0x... python scripts/zetachain/track-cctx.py

Environment variables:

- ``TX_HASH``: Inbound transaction hash or CCTX index. Required.
- ``NETWORK``: ``mainnet`` or ``testnet``. Default: testnet
- ``TIMEOUT``: Seconds to wait before giving up. Default: 60
- ``JSON_OUTPUT``: Set to ``true`` for machine readable output. Default: false
- ``LOG_LEVEL``: Logging level (debug, info, warning, error). Default: warning
- ``ZETACHAIN_API_URL``: Use this LCD endpoint instead of the public one

Exit status is 1 if a CCTX was aborted or reverted, or the tracker could not start.
A timeout is reported, but exits with 0.
"""

import logging
import os
import sys

from tabulate import tabulate

from cctx_tracker.api import ZetaChainAPI
from cctx_tracker.constants import DEFAULT_TIMEOUT
from cctx_tracker.events import ConsoleProgressSink
from cctx_tracker.exceptions import CCTXAbortedOrReverted, InvalidConfiguration
from cctx_tracker.formatting import cctxs_to_json, format_status_text, shorten_hash
from cctx_tracker.tracker import TrackingOutcome, track_cctx
from cctx_tracker.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main() -> int:
    default_log_level = os.environ.get("LOG_LEVEL", "warning")
    setup_console_logging(default_log_level=default_log_level)

    tx_hash = os.environ.get("TX_HASH")
    assert tx_hash, "TX_HASH environment variable missing"

    network = os.environ.get("NETWORK", "testnet")
    timeout = float(os.environ.get("TIMEOUT", DEFAULT_TIMEOUT))
    json_output = os.environ.get("JSON_OUTPUT", "").lower() == "true"

    try:
        api = ZetaChainAPI.create(network)
        result = track_cctx(
            tx_hash,
            api=api,
            timeout=timeout,
            sink=None if json_output else ConsoleProgressSink(),
            quiet=json_output,
        )
        result.raise_for_status()
    except InvalidConfiguration as e:
        logger.error("Cannot track %s: %s", tx_hash, e)
        return 1
    except CCTXAbortedOrReverted as e:
        if not json_output:
            print(f"Failed: {e}")
        return 1

    # Timeouts are reported, but they are not failures
    if json_output:
        if result.is_success():
            print(cctxs_to_json(result.cctxs))
        return 0

    if result.outcome == TrackingOutcome.timed_out:
        print(f"Transaction {tx_hash} was not seen on ZetaChain within {timeout:.0f} seconds")
        return 0

    if result.outcome == TrackingOutcome.not_found:
        print(f"Some CCTXs of {tx_hash} did not finish within {timeout:.0f} seconds")

    table = [
        [
            shorten_hash(cctx_hash),
            history[0].sender_chain_id if history else "-",
            history[0].receiver_chain_id if history else "-",
            " → ".join(format_status_text(r) for r in history) or "-",
        ]
        for cctx_hash, history in result.cctxs.items()
    ]
    print(tabulate(table, headers=["CCTX", "From", "To", "Status history"], tablefmt="fancy_grid"))

    return 0


if __name__ == "__main__":
    sys.exit(main())
