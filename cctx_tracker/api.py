"""ZetaChain LCD REST API client for cross-chain transaction status.

Read-only accessors the tracker polls on every cycle.

ZetaChain is eventually consistent from the tracker's point of view:
a freshly broadcast inbound transaction is unknown for a while,
so "not found" answers are normal and returned as empty values.
Any other failure is logged and also degraded to an empty value,
so one bad response never kills a tracking loop.

Example::

    from cctx_tracker.api import ZetaChainAPI

    api = ZetaChainAPI.create("testnet")
    tss = api.fetch_tss()
    for index in api.fetch_cctx_indices("0x..."):
        print(api.fetch_cctx(index))
"""

import logging
from typing import Any

import requests

from cctx_tracker.constants import (
    CCTX_ENDPOINT,
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_BAD_REQUEST,
    HTTP_NOT_FOUND,
    INBOUND_HASH_TO_CCTX_DATA_ENDPOINT,
    INBOUND_HASH_TO_CCTX_ENDPOINT,
    PENDING_NONCES_ENDPOINT,
    TSS_ENDPOINT,
    get_api_url,
)
from cctx_tracker.exceptions import MalformedResponse
from cctx_tracker.session import create_zetachain_session
from cctx_tracker.types import CctxRecord, PendingNonce

logger = logging.getLogger(__name__)


class ZetaChainAPI:
    """Typed accessors over ZetaChain crosschain and observer endpoints.

    - Stateless apart from the HTTP connection pool,
      safe to share between worker threads

    - Each accessor distinguishes expected absence (silent)
      from unexpected failure (logged)
    """

    def __init__(
        self,
        api_url: str,
        session: requests.Session | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        :param api_url:
            LCD base URL, see :py:func:`cctx_tracker.constants.get_api_url`

        :param session:
            Use a preconfigured session. If not given, create one with retries.

        :param request_timeout:
            Seconds to wait for a single HTTP response
        """
        assert api_url, "api_url missing"
        self.api_url = api_url.rstrip("/")
        self.session = session or create_zetachain_session()
        self.request_timeout = request_timeout

    def __repr__(self):
        return f"<ZetaChainAPI {self.api_url}>"

    @classmethod
    def create(cls, network: str = "testnet", **kwargs) -> "ZetaChainAPI":
        """Create API client for a named network."""
        return cls(get_api_url(network), **kwargs)

    def fetch_json(self, endpoint: str, timeout: float | None = None) -> Any:
        """Perform GET and decode JSON.

        :param endpoint:
            Path starting with slash

        :param timeout:
            Override request timeout, e.g. to fit within the tracking deadline

        :raise requests.HTTPError:
            Non-2xx response

        :raise MalformedResponse:
            Body was not JSON
        """
        url = f"{self.api_url}{endpoint}"
        if timeout is None:
            timeout = self.request_timeout
        response = self.session.get(url, timeout=timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Not JSON: {url}") from e

    def fetch_cctx(self, tx_hash: str, timeout: float | None = None) -> CctxRecord | None:
        """Get cross-chain transaction by its index hash.

        :return:
            Latest status snapshot or ``None`` if ZetaChain does not know the hash (yet)
        """
        try:
            data = self.fetch_json(CCTX_ENDPOINT.format(hash=tx_hash), timeout=timeout)
            return CctxRecord.parse(data["CrossChainTx"])
        except requests.HTTPError as e:
            if _get_status_code(e) in (HTTP_NOT_FOUND, HTTP_BAD_REQUEST):
                return None
            logger.warning("Failed to fetch CCTX %s", tx_hash, exc_info=True)
        except (requests.RequestException, MalformedResponse, KeyError, TypeError):
            logger.warning("Failed to fetch CCTX %s", tx_hash, exc_info=True)
        return None

    def fetch_cctx_indices(self, tx_hash: str, timeout: float | None = None) -> list[str]:
        """Get CCTX indices spawned by an inbound transaction hash.

        A CCTX index can itself be queried here,
        as CCTXs can spawn further CCTXs (chained calls and reverts).

        :return:
            List of CCTX indices, empty if none found
        """
        try:
            data = self.fetch_json(INBOUND_HASH_TO_CCTX_ENDPOINT.format(hash=tx_hash), timeout=timeout)
            indices = data["inboundHashToCctx"]["cctx_index"]
            if not isinstance(indices, list):
                raise MalformedResponse(f"cctx_index is not a list: {indices}")
            return [str(i) for i in indices if i]
        except requests.HTTPError as e:
            if _get_status_code(e) == HTTP_NOT_FOUND:
                return []
            logger.warning("Failed to fetch CCTX by inbound hash %s", tx_hash, exc_info=True)
        except (requests.RequestException, MalformedResponse, KeyError, TypeError):
            logger.warning("Failed to fetch CCTX by inbound hash %s", tx_hash, exc_info=True)
        return []

    def fetch_cctxs_by_inbound_hash(self, tx_hash: str, timeout: float | None = None) -> dict[str, CctxRecord]:
        """Get full CCTX data for all CCTXs spawned by an inbound hash.

        One request instead of :py:meth:`fetch_cctx_indices` plus :py:meth:`fetch_cctx` for each index.
        Public convenience accessor for one-off lookups. The poll loop does not use it,
        as it needs the index lookups for every tracked CCTX anyway.

        :return:
            CCTX index -> status snapshot
        """
        try:
            data = self.fetch_json(INBOUND_HASH_TO_CCTX_DATA_ENDPOINT.format(hash=tx_hash), timeout=timeout)
            txs = data.get("CrossChainTxs")
            if not isinstance(txs, list):
                return {}
            return {tx["index"]: CctxRecord.parse(tx) for tx in txs}
        except requests.HTTPError as e:
            if _get_status_code(e) in (HTTP_NOT_FOUND, HTTP_BAD_REQUEST):
                return {}
            logger.warning("Failed to fetch CCTX data by inbound hash %s", tx_hash, exc_info=True)
        except (requests.RequestException, MalformedResponse, AttributeError, KeyError, TypeError):
            logger.warning("Failed to fetch CCTX data by inbound hash %s", tx_hash, exc_info=True)
        return {}

    def fetch_tss(self, timeout: float | None = None) -> str | None:
        """Get the current TSS signer public key.

        :return:
            TSS public key or ``None`` if it could not be resolved
        """
        try:
            data = self.fetch_json(TSS_ENDPOINT, timeout=timeout)
            tss = data["TSS"]["tss_pubkey"]
            return tss or None
        except (requests.RequestException, MalformedResponse, KeyError, TypeError):
            logger.warning("Failed to fetch TSS from %s", self.api_url, exc_info=True)
        return None

    def fetch_pending_nonces(self, tss: str, timeout: float | None = None) -> list[PendingNonce]:
        """Get outbound queue heads for a TSS key.

        :param tss:
            Only return nonces of this signer

        :return:
            Pending nonces, one per destination chain. Empty on failure.
        """
        try:
            data = self.fetch_json(PENDING_NONCES_ENDPOINT, timeout=timeout)
            entries = data["pending_nonces"]
            nonces = [PendingNonce.parse(n) for n in entries]
            return [n for n in nonces if n.tss == tss]
        except (requests.RequestException, MalformedResponse, KeyError, TypeError):
            logger.warning("Failed to fetch pending nonces from %s", self.api_url, exc_info=True)
        return []


def _get_status_code(e: requests.HTTPError) -> int | None:
    if e.response is None:
        return None
    return e.response.status_code
