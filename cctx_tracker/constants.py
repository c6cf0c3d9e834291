"""ZetaChain cross-chain transaction tracking constants.

ZetaChain exposes its crosschain and observer modules over the Cosmos LCD
REST API. The tracker only needs four read endpoints:

1. ``/zeta-chain/crosschain/cctx/{hash}`` - a CCTX by its index
2. ``/zeta-chain/crosschain/inTxHashToCctx/{hash}`` - CCTX indices spawned by an inbound hash
3. ``/zeta-chain/observer/TSS`` - the current TSS signer public key
4. ``/zeta-chain/observer/pendingNonces`` - outbound queue heads per chain and TSS

- `ZetaChain API documentation <https://www.zetachain.com/docs/developers/architecture/zetacore/>`_
"""

import os

from cctx_tracker.exceptions import InvalidConfiguration

#: Public ZetaChain mainnet LCD endpoint.
ZETACHAIN_MAINNET_API_URL = "https://zetachain.blockpi.network/lcd/v1/public"

#: Public ZetaChain Athens testnet LCD endpoint.
ZETACHAIN_TESTNET_API_URL = "https://zetachain-athens.blockpi.network/lcd/v1/public"

#: Network name to LCD base URL.
ZETACHAIN_API_URLS: dict[str, str] = {
    "mainnet": ZETACHAIN_MAINNET_API_URL,
    "testnet": ZETACHAIN_TESTNET_API_URL,
}

#: Environment variable that overrides the resolved API base URL.
ZETACHAIN_API_URL_ENV = "ZETACHAIN_API_URL"

#: CCTX by index
CCTX_ENDPOINT = "/zeta-chain/crosschain/cctx/{hash}"

#: CCTX indices by inbound hash
INBOUND_HASH_TO_CCTX_ENDPOINT = "/zeta-chain/crosschain/inTxHashToCctx/{hash}"

#: Full CCTX payloads by inbound hash
INBOUND_HASH_TO_CCTX_DATA_ENDPOINT = "/zeta-chain/crosschain/inboundHashToCctxData/{hash}"

#: TSS signer key
TSS_ENDPOINT = "/zeta-chain/observer/TSS"

#: Pending outbound nonces for all chains and TSS keys
PENDING_NONCES_ENDPOINT = "/zeta-chain/observer/pendingNonces"

#: HTTP 404 status code indicating resource not found
HTTP_NOT_FOUND = 404

#: HTTP 400 status code; ZetaChain returns this for hashes it cannot parse yet
HTTP_BAD_REQUEST = 400

#: Seconds between poll cycles
DEFAULT_POLL_INTERVAL = 3.0

#: Seconds before tracking gives up
DEFAULT_TIMEOUT = 60.0

#: Per-request HTTP timeout in seconds
DEFAULT_REQUEST_TIMEOUT = 10.0

#: How many threads fetch per-hash data within a poll cycle
DEFAULT_MAX_WORKERS = 8

#: Spinner key used for the "searching for transaction" indicator.
SEARCH_SPINNER = "search"


def get_api_url(network: str = "testnet") -> str:
    """Resolve ZetaChain LCD base URL for a network.

    ``ZETACHAIN_API_URL`` environment variable takes precedence,
    so you can point the tracker to a private node.

    :param network:
        ``mainnet`` or ``testnet``

    :return:
        Base URL without a trailing slash

    :raise InvalidConfiguration:
        Unknown network name
    """
    override = os.environ.get(ZETACHAIN_API_URL_ENV)
    if override:
        return override.rstrip("/")

    try:
        return ZETACHAIN_API_URLS[network]
    except KeyError:
        raise InvalidConfiguration(f"Unknown ZetaChain network {network}, supported: {', '.join(ZETACHAIN_API_URLS)}")
