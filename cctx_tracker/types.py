"""Cross-chain transaction data model.

ZetaChain returns a large ``CrossChainTx`` JSON object for each CCTX.
The tracker keeps only the few fields needed to follow the status
and to estimate the outbound queue position.
"""

import enum
from dataclasses import dataclass

from cctx_tracker.exceptions import MalformedResponse


class CctxStatus:
    """Known ``cctx_status.status`` values.

    ZetaChain may add new intermediate statuses, so the tracker
    treats the status as a free-form string and these as reference values.
    """

    pending_inbound = "PendingInbound"
    pending_outbound = "PendingOutbound"
    pending_revert = "PendingRevert"
    outbound_mined = "OutboundMined"
    aborted = "Aborted"
    reverted = "Reverted"


#: CCTX statuses after which ZetaChain does not touch the CCTX anymore
TERMINAL_STATUSES = frozenset({CctxStatus.outbound_mined, CctxStatus.aborted, CctxStatus.reverted})

#: Terminal statuses we report as failures
FAILED_STATUSES = frozenset({CctxStatus.aborted, CctxStatus.reverted})


class TrackedStatus(enum.Enum):
    """Where a tracked hash is in its lifecycle.

    Derived from the last record in the status history.
    """

    #: Hash is known, but we have not fetched any status yet
    unknown = "unknown"

    #: Status fetched, not terminal
    pending = "pending"

    #: Outbound transaction was mined on the destination chain
    mined = "mined"

    #: Aborted or reverted
    failed = "failed"


@dataclass(slots=True, frozen=True)
class CctxRecord:
    """One observed status snapshot of a cross-chain transaction.

    A tracked hash accumulates a tuple of these, one per status change.
    """

    #: Destination chain transaction hash, empty until the outbound is broadcast
    outbound_hash: str

    #: TSS nonce of the outbound transaction on the destination chain
    outbound_nonce: int

    #: Chain id where the inbound transaction was made
    sender_chain_id: str

    #: Chain id of the outbound transaction
    receiver_chain_id: str

    #: E.g. ``PendingOutbound``, see :py:class:`CctxStatus`
    status: str

    #: Human readable explanation, often empty
    status_message: str = ""

    #: ZetaChain does not observe destination confirmations, always ``False``
    confirmed_on_destination: bool = False

    @classmethod
    def parse(cls, data: dict) -> "CctxRecord":
        """Build a record from ``CrossChainTx`` JSON payload.

        :raise MalformedResponse:
            Payload does not look like a CCTX
        """
        try:
            outbound = data["outbound_params"][0]
            return cls(
                outbound_hash=outbound.get("hash", ""),
                outbound_nonce=int(outbound["tss_nonce"]),
                sender_chain_id=str(data["inbound_params"]["sender_chain_id"]),
                receiver_chain_id=str(outbound["receiver_chainId"]),
                status=data["cctx_status"]["status"],
                status_message=data["cctx_status"].get("status_message") or "",
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Could not parse CrossChainTx: {e}") from e

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        """Machine readable output, using ZetaChain's own field names."""
        return {
            "confirmed_on_destination": self.confirmed_on_destination,
            "outbound_tx_hash": self.outbound_hash,
            "outbound_tx_tss_nonce": self.outbound_nonce,
            "receiver_chainId": self.receiver_chain_id,
            "sender_chain_id": self.sender_chain_id,
            "status": self.status,
            "status_message": self.status_message,
        }


@dataclass(slots=True, frozen=True)
class PendingNonce:
    """Outbound queue head for one destination chain and TSS key."""

    chain_id: str

    #: Lowest nonce not yet mined on the destination chain
    nonce_low: int

    #: Highest nonce assigned so far
    nonce_high: int

    #: TSS public key owning the queue
    tss: str

    @classmethod
    def parse(cls, data: dict) -> "PendingNonce":
        """Build from ``pending_nonces`` list entry.

        :raise MalformedResponse:
            Entry does not look like a pending nonce
        """
        try:
            return cls(
                chain_id=str(data["chain_id"]),
                nonce_low=int(data.get("nonce_low") or 0),
                nonce_high=int(data.get("nonce_high") or 0),
                tss=data["tss"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Could not parse pending nonce: {e}") from e
