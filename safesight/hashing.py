"""
EIP-712 hashes for Safe transactions.

The domain separator and SafeTx typehash changed across Safe releases:

  * < 1.0.0       legacy domain (no chainId), legacy SafeTx (``dataGas``)
  * 1.0.0 - 1.2.0 legacy domain (no chainId), current SafeTx (``baseGas``)
  * > 1.2.0       current domain (chainId),   current SafeTx

All functions are pure; the only failure mode is an unparseable safe version.
"""
import logging
import re
from dataclasses import dataclass
from typing import Mapping, Tuple

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_canonical_address

from .errors import MalformedTransactionError
from .models import SafeTransaction

logger = logging.getLogger(__name__)

# keccak256("EIP712Domain(uint256 chainId,address verifyingContract)")
DOMAIN_SEPARATOR_TYPEHASH = "0x47e79534a245952e8b16893a336b85a3d9ea9fa8c573f3d803afb92a79469218"
# keccak256("EIP712Domain(address verifyingContract)")
DOMAIN_SEPARATOR_TYPEHASH_LEGACY = "0x035aff83d86937d35b32e04f0ddc6ff469290eef2f1b692d8a815c89404d4749"
# keccak256("SafeTx(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,uint256 baseGas,
#            uint256 gasPrice,address gasToken,address refundReceiver,uint256 nonce)")
SAFE_TX_TYPEHASH = "0xbb8310d486368db6bd6f849402fdd73ad53d316b5a4b2644ad6efe0f941286d8"
# Same as above with `dataGas` in place of `baseGas`.
SAFE_TX_TYPEHASH_LEGACY = "0x14d461bc7412367e924637b363c7bf29b8f47e2f84869f4426e5633d8af47b20"

# approveHash(bytes32)
APPROVE_HASH_SELECTOR = "0xd4d9bdcd"

EIP712_PREFIX = b"\x19\x01"

DOMAIN_SEPARATOR_TYPES = ["bytes32", "uint256", "address"]
DOMAIN_SEPARATOR_TYPES_LEGACY = ["bytes32", "address"]
SAFE_TX_TYPES = [
    "bytes32", "address", "uint256", "bytes32", "uint8",
    "uint256", "uint256", "uint256", "address", "address", "uint256",
]

LAST_LEGACY_DOMAIN_VERSION = (1, 2, 0)
FIRST_CURRENT_SAFE_TX_VERSION = (1, 0, 0)

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


def _b32(hex_str: str) -> bytes:
    return bytes.fromhex(hex_str[2:] if hex_str.startswith("0x") else hex_str)


def _hex(b: bytes) -> str:
    return "0x" + b.hex()


def parse_safe_version(version: str) -> Tuple[int, int, int]:
    """``"1.3.0+L2"`` -> ``(1, 3, 0)``. Raises MalformedTransactionError otherwise."""
    m = _VERSION_RE.match(version.strip()) if isinstance(version, str) else None
    if not m:
        raise MalformedTransactionError(f"unparseable safe version {version!r}")
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


@dataclass(frozen=True)
class HashScheme:
    """Which typehashes and domain layout a Safe version signs with."""
    domain_typehash: str
    domain_includes_chain_id: bool
    safe_tx_typehash: str


# Keyed by (legacy domain, legacy SafeTx). A current domain never pairs with the
# legacy SafeTx typehash, since the chainId domain arrived after 1.0.0.
HASH_SCHEMES: Mapping[Tuple[bool, bool], HashScheme] = {
    (True, True): HashScheme(DOMAIN_SEPARATOR_TYPEHASH_LEGACY, False, SAFE_TX_TYPEHASH_LEGACY),
    (True, False): HashScheme(DOMAIN_SEPARATOR_TYPEHASH_LEGACY, False, SAFE_TX_TYPEHASH),
    (False, False): HashScheme(DOMAIN_SEPARATOR_TYPEHASH, True, SAFE_TX_TYPEHASH),
}


def hash_scheme(version: str) -> HashScheme:
    parsed = parse_safe_version(version)
    key = (parsed <= LAST_LEGACY_DOMAIN_VERSION, parsed < FIRST_CURRENT_SAFE_TX_VERSION)
    scheme = HASH_SCHEMES[key]
    logger.debug("safe version %s -> %s", version, scheme)
    return scheme


def domain_separator(safe: str, chain_id: int, version: str) -> bytes:
    scheme = hash_scheme(version)
    typehash = _b32(scheme.domain_typehash)
    if scheme.domain_includes_chain_id:
        encoded = abi_encode(DOMAIN_SEPARATOR_TYPES, [typehash, chain_id, to_canonical_address(safe)])
    else:
        encoded = abi_encode(DOMAIN_SEPARATOR_TYPES_LEGACY, [typehash, to_canonical_address(safe)])
    return keccak(encoded)


def safe_tx_struct_hash(tx: SafeTransaction) -> bytes:
    scheme = hash_scheme(tx.safe_version)
    data_hash = keccak(_b32(tx.data or "0x"))
    encoded = abi_encode(SAFE_TX_TYPES, [
        _b32(scheme.safe_tx_typehash),
        to_canonical_address(tx.to),
        tx.value,
        data_hash,
        int(tx.operation),
        tx.safe_tx_gas,
        tx.base_gas,
        tx.gas_price,
        to_canonical_address(tx.gas_token),
        to_canonical_address(tx.refund_receiver),
        tx.nonce,
    ])
    return keccak(encoded)


def domain_hash(tx: SafeTransaction) -> str:
    return _hex(domain_separator(tx.safe, tx.chain, tx.safe_version))


def message_hash(tx: SafeTransaction) -> str:
    return _hex(safe_tx_struct_hash(tx))


def approval_hash(tx: SafeTransaction) -> str:
    """keccak256(0x1901 || domainHash || messageHash): the digest a signer approves."""
    domain = domain_separator(tx.safe, tx.chain, tx.safe_version)
    message = safe_tx_struct_hash(tx)
    return _hex(keccak(EIP712_PREFIX + domain + message))


def safe_hashes(tx: SafeTransaction) -> Tuple[str, str, str]:
    """(domain, message, approval) computed from one pass over the transaction."""
    domain = domain_separator(tx.safe, tx.chain, tx.safe_version)
    message = safe_tx_struct_hash(tx)
    return _hex(domain), _hex(message), _hex(keccak(EIP712_PREFIX + domain + message))
