"""Transaction hash format validation.

The tracker accepts a hash from any chain connected to ZetaChain,
plus CCTX indices themselves:

- EVM and CCTX index: ``0x`` + 64 hex characters
- Bitcoin and TON: 64 hex characters without a prefix
- Solana: base58 encoded 64 byte signature
- Sui: base58 encoded 32 byte transaction digest
"""

import enum
import re

from base58 import b58decode
from eth_utils import is_0x_prefixed, is_hexstr

from cctx_tracker.exceptions import InvalidTransactionHash


_RAW_HEX_HASH = re.compile(r"^[0-9a-fA-F]{64}$")

#: Solana signature byte length
SOLANA_SIGNATURE_LENGTH = 64

#: Sui transaction digest byte length
SUI_DIGEST_LENGTH = 32


class HashFormat(enum.Enum):
    """Which kind of chain a hash looks like it came from."""

    evm = "evm"
    raw_hex = "raw_hex"
    solana = "solana"
    sui = "sui"


def _decode_base58(value: str) -> bytes | None:
    try:
        return b58decode(value)
    except ValueError:
        return None


def detect_hash_format(tx_hash: str) -> HashFormat | None:
    """Guess the chain family from a hash.

    :return:
        Hash format or ``None`` if this is not a hash we can track
    """
    if not isinstance(tx_hash, str) or not tx_hash:
        return None

    if is_0x_prefixed(tx_hash):
        if len(tx_hash) == 66 and is_hexstr(tx_hash):
            return HashFormat.evm
        return None

    if _RAW_HEX_HASH.match(tx_hash):
        return HashFormat.raw_hex

    decoded = _decode_base58(tx_hash)
    if decoded is None:
        return None

    if len(decoded) == SOLANA_SIGNATURE_LENGTH:
        return HashFormat.solana

    if len(decoded) == SUI_DIGEST_LENGTH:
        return HashFormat.sui

    return None


def validate_transaction_hash(tx_hash: str) -> HashFormat:
    """Check the root hash before we start polling.

    :raise InvalidTransactionHash:
        Hash is not in any supported format
    """
    hash_format = detect_hash_format(tx_hash)
    if hash_format is None:
        raise InvalidTransactionHash(f"Not a valid transaction hash: {tx_hash!r}. Expected EVM (0x + 64 hex), Bitcoin/TON (64 hex), Solana or Sui (base58) hash.")
    return hash_format
