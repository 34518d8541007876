"""
Verification facade and nested-approval assembler.

A record without ``nested`` is verified as-is. A record with ``nested``
describes two transactions: its top-level fields are the inner transaction
(what eventually executes on the child Safe) and ``nested`` holds the outer
``approveHash`` call that is being signed now. Both are verified and the outer
result carries the inner one as ``nested_result``.
"""
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Mapping, Optional

from eth_utils import is_hex_address, to_checksum_address

from .decoder import SELECTOR_SIZE, CalldataDecoder, hex_to_bytes
from .errors import MalformedTransactionError, NestedApprovalError
from .hashing import APPROVE_HASH_SELECTOR, parse_safe_version, safe_hashes
from .models import NestedApproval, Operation, SafeTransaction, VerificationResult, parse_uint
from .registry import DEFAULT_REGISTRIES, Registries

logger = logging.getLogger(__name__)


def strip_chain_prefix(address: str) -> str:
    """``"oeth:0xabc"`` -> ``"0xabc"``; everything after the last colon."""
    return address.rsplit(":", 1)[-1]


def _normalize_address(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise MalformedTransactionError(f"{name} must be an address string, got {type(value).__name__}")
    address = strip_chain_prefix(value.strip())
    if not is_hex_address(address):
        raise MalformedTransactionError(f"{name} is not a valid 20-byte hex address: {value!r}")
    return to_checksum_address(address)


def _normalize_data(value: Any, name: str) -> str:
    if value is None or value == "":
        return "0x"
    data = hex_to_bytes(value) if isinstance(value, str) and value.startswith("0x") else None
    if data is None:
        raise MalformedTransactionError(f"{name} must be 0x-prefixed hex of even length")
    return "0x" + data.hex()


def _normalize_version(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise MalformedTransactionError(f"{name} must be a version string")
    parse_safe_version(value)
    return value.strip()


def normalize_nested(nested: NestedApproval) -> NestedApproval:
    return NestedApproval(
        safe=_normalize_address(nested.safe, "nested.safe"),
        safe_version=_normalize_version(nested.safe_version, "nested.safe_version"),
        nonce=parse_uint(nested.nonce, "nested.nonce"),
        data=_normalize_data(nested.data, "nested.data"),
        operation=Operation.from_code(nested.operation),
        to=_normalize_address(nested.to, "nested.to"),
    )


def normalize_transaction(tx: SafeTransaction) -> SafeTransaction:
    """Strip chain prefixes, checksum addresses and validate every field."""
    return SafeTransaction(
        safe=_normalize_address(tx.safe, "safe"),
        safe_version=_normalize_version(tx.safe_version, "safe_version"),
        chain=parse_uint(tx.chain, "chain"),
        to=_normalize_address(tx.to, "to"),
        value=parse_uint(tx.value, "value"),
        data=_normalize_data(tx.data, "data"),
        operation=Operation.from_code(tx.operation),
        safe_tx_gas=parse_uint(tx.safe_tx_gas, "safe_tx_gas"),
        base_gas=parse_uint(tx.base_gas, "base_gas"),
        gas_price=parse_uint(tx.gas_price, "gas_price"),
        gas_token=_normalize_address(tx.gas_token, "gas_token"),
        refund_receiver=_normalize_address(tx.refund_receiver, "refund_receiver"),
        nonce=parse_uint(tx.nonce, "nonce"),
        nested=normalize_nested(tx.nested) if tx.nested is not None else None,
    )


def approved_hash(data: str) -> Optional[str]:
    """The hash argument when ``data`` is exactly an ``approveHash(bytes32)`` call, else None."""
    raw = hex_to_bytes(data)
    if raw is None or len(raw) != SELECTOR_SIZE + 32:
        return None
    if "0x" + raw[:SELECTOR_SIZE].hex() != APPROVE_HASH_SELECTOR:
        return None
    return "0x" + raw[SELECTOR_SIZE:].hex()


def outer_transaction(tx: SafeTransaction) -> SafeTransaction:
    """The approveHash transaction wrapping ``tx``; approveHash never carries ETH value."""
    nested = tx.nested
    if nested is None:
        raise ValueError("transaction has no nested approval")
    return replace(
        tx,
        to=nested.to,
        safe=nested.safe,
        safe_version=nested.safe_version,
        nonce=nested.nonce,
        operation=nested.operation,
        data=nested.data,
        value=0,
        nested=None,
    )


def _verify_level(tx: SafeTransaction, decoder: CalldataDecoder) -> VerificationResult:
    call = decoder.decode(tx.to, tx.data, tx.chain, delegate_call=tx.operation == Operation.DELEGATE_CALL)
    domain, message, approval = safe_hashes(tx)
    return VerificationResult(
        transaction=tx,
        call=call,
        domain_hash=domain,
        message_hash=message,
        approval_hash=approval,
    )


def verify_transaction(tx: SafeTransaction, registries: Registries = DEFAULT_REGISTRIES) -> VerificationResult:
    """
    Verify a transaction and, when it wraps one, the transaction it approves.

    Raises MalformedTransactionError for bad input, DecodeError when a batch
    cannot be fully decoded and NestedApprovalError when the outer approveHash
    call does not approve the inner transaction.
    """
    tx = normalize_transaction(tx)
    decoder = CalldataDecoder(registries)

    if tx.nested is None:
        return _verify_level(tx, decoder)

    inner = verify_transaction(replace(tx, nested=None), registries)
    outer_tx = outer_transaction(tx)

    approved = approved_hash(outer_tx.data)
    if approved is None:
        raise NestedApprovalError("nested transaction data is not an approveHash(bytes32) call")
    if approved != inner.approval_hash:
        raise NestedApprovalError(
            f"outer approveHash approves {approved} but the inner transaction hashes to {inner.approval_hash}")

    logger.debug("outer safe %s approves inner safe %s tx %s", outer_tx.safe, tx.safe, inner.approval_hash)
    outer = _verify_level(outer_tx, decoder)
    return replace(outer, nested_result=inner)


def verify_record(record: Mapping[str, Any], registries: Registries = DEFAULT_REGISTRIES) -> VerificationResult:
    return verify_transaction(SafeTransaction.from_dict(record), registries)


def load_transaction(path: str) -> SafeTransaction:
    """Read a JSON transaction record from ``path`` (``-`` for stdin)."""
    try:
        if path == "-":
            record = json.load(sys.stdin)
        else:
            with open(path, "r", encoding="utf-8") as f:
                record = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedTransactionError(f"{path} is not valid JSON: {exc}") from exc
    return SafeTransaction.from_dict(record)
