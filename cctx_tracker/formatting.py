"""Human readable and machine readable output of tracked CCTXs."""

import json
from typing import Iterable, Mapping, Sequence

from cctx_tracker.types import CctxRecord, PendingNonce


def shorten_hash(tx_hash: str) -> str:
    """Shorten a hash for display, e.g. ``0x12345678...9abcdef0``."""
    if not tx_hash:
        return ""

    if len(tx_hash) <= 10:
        return tx_hash

    return f"{tx_hash[:10]}...{tx_hash[-8:]}"


def format_status_text(record: CctxRecord) -> str:
    """Status with the optional status message, e.g. ``Reverted (outbound failed)``."""
    status = record.status or "Unknown"
    if record.status_message:
        return f"{status} ({record.status_message})"
    return status


def calculate_queue_depth(record: CctxRecord, pending_nonces: Iterable[PendingNonce]) -> int | None:
    """How many outbound transactions are ahead of this one on the destination chain.

    :return:
        Number of transactions ahead or ``None`` if we have no pending nonce data for the chain
    """
    for pending in pending_nonces:
        if pending.chain_id == record.receiver_chain_id:
            return record.outbound_nonce - pending.nonce_low
    return None


def format_queue_text(record: CctxRecord, pending_nonces: Iterable[PendingNonce]) -> str:
    depth = calculate_queue_depth(record, pending_nonces)
    if depth is not None and depth > 0:
        return f" ({depth} in queue)"
    return ""


def format_progress_text(
    tx_hash: str,
    history: Sequence[CctxRecord],
    pending_nonces: Iterable[PendingNonce],
) -> str:
    """Progress line for the last record of a CCTX.

    Sender and receiver chains are taken from the first observation,
    as they do not change during the CCTX lifecycle.
    """
    assert history, f"No status history for {tx_hash}"
    first = history[0]
    latest = history[-1]
    queue = format_queue_text(latest, pending_nonces)
    return f"{shorten_hash(tx_hash)}: {first.sender_chain_id} → {first.receiver_chain_id}{queue}: {format_status_text(latest)}"


def cctxs_to_dict(cctxs: Mapping[str, Sequence[CctxRecord]]) -> dict[str, list[dict]]:
    return {tx_hash: [r.to_dict() for r in history] for tx_hash, history in cctxs.items()}


def cctxs_to_json(cctxs: Mapping[str, Sequence[CctxRecord]]) -> str:
    """Serialise tracked status histories for ``JSON_OUTPUT`` mode."""
    return json.dumps(cctxs_to_dict(cctxs), indent=2)
