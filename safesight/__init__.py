"""
safesight: offline verification of Safe multisig transactions.
"""
from .decoder import CalldataDecoder, decode_calldata
from .errors import (
    BatchDecodeError,
    DecodeDepthExceededError,
    DecodeError,
    DisallowedBatchCallError,
    MalformedTransactionError,
    NestedApprovalError,
    VerificationError,
)
from .hashing import approval_hash, domain_hash, message_hash
from .models import CallNode, NestedApproval, Operation, SafeTransaction, VerificationResult
from .registry import DEFAULT_REGISTRIES, Registries
from .verify import verify_record, verify_transaction

__version__ = "0.1.0"

__all__ = [
    "CalldataDecoder",
    "decode_calldata",
    "VerificationError",
    "MalformedTransactionError",
    "DecodeError",
    "BatchDecodeError",
    "DisallowedBatchCallError",
    "DecodeDepthExceededError",
    "NestedApprovalError",
    "domain_hash",
    "message_hash",
    "approval_hash",
    "CallNode",
    "NestedApproval",
    "Operation",
    "SafeTransaction",
    "VerificationResult",
    "DEFAULT_REGISTRIES",
    "Registries",
    "verify_record",
    "verify_transaction",
    "__version__",
]
