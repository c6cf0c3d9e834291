"""Discover CCTXs linked to a hash.

An inbound transaction spawns one or more CCTXs. A CCTX can spawn
further CCTXs (e.g. a revert or a call chained through ZetaChain),
which ZetaChain indexes with the parent CCTX index as the inbound hash.

Discovery is repeated for every known hash on every poll cycle,
so chains of CCTXs are followed at least one hop per cycle.
"""

import logging
from typing import Iterable, Mapping

from cctx_tracker.api import ZetaChainAPI
from cctx_tracker.events import ProgressSink
from cctx_tracker.state import CctxHistories

logger = logging.getLogger(__name__)


def merge_discovered_hashes(
    indices: Iterable[str],
    cctxs: CctxHistories,
    spinners: Mapping[str, bool],
    sink: ProgressSink | None = None,
    quiet: bool = False,
) -> tuple[dict, dict]:
    """Add newly discovered CCTX indices to the tracked set.

    - Already tracked or already flagged indices are ignored,
      so running this twice with the same input is a no-op

    - New indices start with an empty status history

    - If a sink is attached and we are not in quiet mode,
      announce the new CCTX and mark its spinner active

    :return:
        Tuple (new cctxs, new spinners). Input mappings are not modified.
    """
    new_cctxs = dict(cctxs)
    new_spinners = dict(spinners)

    for index in indices:
        if not index or index in new_cctxs or new_spinners.get(index):
            continue

        logger.info("Discovered CCTX %s", index)
        new_cctxs[index] = ()
        if sink is not None and not quiet:
            sink.discovered(index)
            new_spinners[index] = True

    return new_cctxs, new_spinners


def discover(
    api: ZetaChainAPI,
    tx_hash: str,
    cctxs: CctxHistories,
    spinners: Mapping[str, bool],
    sink: ProgressSink | None = None,
    quiet: bool = False,
    timeout: float | None = None,
) -> tuple[dict, dict]:
    """Look up CCTXs spawned by a hash and merge them into the tracked set.

    :param tx_hash:
        Inbound hash or an already known CCTX index

    :param timeout:
        HTTP request timeout override

    :return:
        Tuple (new cctxs, new spinners)
    """
    indices = api.fetch_cctx_indices(tx_hash, timeout=timeout)
    return merge_discovered_hashes(indices, cctxs, spinners, sink=sink, quiet=quiet)
