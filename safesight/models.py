"""
Data models for Safe transactions, decoded calls and verification results.

Input records follow the JSON shape produced by the transaction exporters
(snake_case keys, optional ``nested`` object). Output records use the camelCase
keys the renderers expect.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import MalformedTransactionError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT256_MAX = (1 << 256) - 1
UNKNOWN_FUNCTION = "unknown"


def parse_uint(value: Any, name: str) -> int:
    """Accept a JSON number or a decimal string; reject negatives, floats, bools and anything above uint256."""
    if isinstance(value, bool) or value is None:
        raise MalformedTransactionError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = int(value.strip(), 10)
        except ValueError:
            raise MalformedTransactionError(f"{name} must be a decimal integer, got {value!r}") from None
    else:
        raise MalformedTransactionError(f"{name} must be an integer, got {type(value).__name__}")
    if parsed < 0:
        raise MalformedTransactionError(f"{name} must be non-negative, got {parsed}")
    if parsed > UINT256_MAX:
        raise MalformedTransactionError(f"{name} does not fit in uint256")
    return parsed


def _require_str(record: Mapping[str, Any], key: str, default: Optional[str] = None) -> str:
    value = record.get(key, default)
    if value is None:
        raise MalformedTransactionError(f"missing required field '{key}'")
    if not isinstance(value, str):
        raise MalformedTransactionError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _require_uint(record: Mapping[str, Any], key: str, default: Optional[int] = None) -> int:
    value = record.get(key, default)
    if value is None:
        raise MalformedTransactionError(f"missing required field '{key}'")
    return parse_uint(value, key)


class Operation(IntEnum):
    CALL = 0
    DELEGATE_CALL = 1

    @classmethod
    def from_code(cls, code: Any) -> "Operation":
        value = parse_uint(code, "operation")
        try:
            return cls(value)
        except ValueError:
            raise MalformedTransactionError(f"invalid operation code {value} (expected 0=CALL or 1=DELEGATECALL)") from None


@dataclass(frozen=True)
class NestedApproval:
    """The outer approveHash transaction that approves the enclosing (inner) transaction."""
    safe: str
    safe_version: str
    nonce: int
    data: str
    operation: Operation
    to: str

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "NestedApproval":
        if not isinstance(record, Mapping):
            raise MalformedTransactionError("nested must be a JSON object")
        return cls(
            safe=_require_str(record, "safe"),
            safe_version=_require_str(record, "safe_version"),
            nonce=_require_uint(record, "nonce"),
            data=_require_str(record, "data", "0x"),
            operation=Operation.from_code(record.get("operation", 0)),
            to=_require_str(record, "to"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "safe": self.safe,
            "safe_version": self.safe_version,
            "nonce": self.nonce,
            "data": self.data,
            "operation": int(self.operation),
            "to": self.to,
        }


@dataclass(frozen=True)
class SafeTransaction:
    safe: str
    safe_version: str
    chain: int
    to: str
    value: int = 0
    data: str = "0x"
    operation: Operation = Operation.CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    nonce: int = 0
    nested: Optional[NestedApproval] = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "SafeTransaction":
        """Parse an input record (file, QR payload or service export)."""
        if not isinstance(record, Mapping):
            raise MalformedTransactionError("transaction record must be a JSON object")
        nested = record.get("nested")
        return cls(
            safe=_require_str(record, "safe"),
            safe_version=_require_str(record, "safe_version"),
            chain=_require_uint(record, "chain"),
            to=_require_str(record, "to"),
            value=_require_uint(record, "value", 0),
            data=record.get("data") or "0x",
            operation=Operation.from_code(record.get("operation", 0)),
            safe_tx_gas=_require_uint(record, "safe_tx_gas", 0),
            base_gas=_require_uint(record, "base_gas", 0),
            gas_price=_require_uint(record, "gas_price", 0),
            gas_token=record.get("gas_token") or ZERO_ADDRESS,
            refund_receiver=record.get("refund_receiver") or ZERO_ADDRESS,
            nonce=_require_uint(record, "nonce"),
            nested=NestedApproval.from_dict(nested) if nested is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "safe": self.safe,
            "safe_version": self.safe_version,
            "chain": self.chain,
            "to": self.to,
            "value": str(self.value),
            "data": self.data,
            "operation": int(self.operation),
            "safe_tx_gas": self.safe_tx_gas,
            "base_gas": self.base_gas,
            "gas_price": str(self.gas_price),
            "gas_token": self.gas_token,
            "refund_receiver": self.refund_receiver,
            "nonce": self.nonce,
        }
        if self.nested is not None:
            out["nested"] = self.nested.to_dict()
        return out


@dataclass(frozen=True)
class CallNode:
    """
    One decoded call. A node is either raw (``raw_data`` set) or parsed
    (``parsed_arguments`` set), never both; ``sub_calls`` is only filled for
    recognized batching invocations.
    """
    target: str
    function_name: str = UNKNOWN_FUNCTION
    target_name: Optional[str] = None
    raw_data: Optional[str] = None
    parsed_arguments: Optional[Dict[str, Any]] = None
    sub_calls: Tuple["CallNode", ...] = field(default_factory=tuple)
    delegate_call: bool = False

    def __post_init__(self):
        if (self.raw_data is None) == (self.parsed_arguments is None):
            raise ValueError("CallNode needs exactly one of raw_data or parsed_arguments")
        object.__setattr__(self, "sub_calls", tuple(self.sub_calls))

    @property
    def is_raw(self) -> bool:
        return self.raw_data is not None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"target": self.target}
        if self.target_name:
            out["targetName"] = self.target_name
        out["functionName"] = self.function_name
        if self.raw_data is not None:
            out["rawData"] = self.raw_data
        else:
            out["parsedArguments"] = self.parsed_arguments
        if self.sub_calls:
            out["subCalls"] = [c.to_dict() for c in self.sub_calls]
        out["delegateCall"] = self.delegate_call
        return out


@dataclass(frozen=True)
class VerificationResult:
    transaction: SafeTransaction
    call: CallNode
    domain_hash: str
    message_hash: str
    approval_hash: str
    nested_result: Optional["VerificationResult"] = None

    def to_dict(self) -> Dict[str, Any]:
        call = self.call.to_dict()
        transaction = self.transaction.to_dict()
        transaction["call"] = call
        out = {
            "transaction": transaction,
            "domainHash": self.domain_hash,
            "messageHash": self.message_hash,
            "approvalHash": self.approval_hash,
            "call": call,
        }
        if self.nested_result is not None:
            out["nestedResult"] = self.nested_result.to_dict()
        return out
