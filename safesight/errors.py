"""
Exceptions raised by the verification pipeline.
"""
from typing import Optional


class VerificationError(Exception):
    """Base exception for anything that aborts a verification."""
    pass


class MalformedTransactionError(VerificationError, ValueError):
    """Raised when a transaction record has invalid fields (hex, ints, version, operation)."""
    pass


class DecodeError(VerificationError):
    """
    Raised when calldata cannot be decoded safely.

    Carries the level that failed so the message points at the exact call
    in a nested batch.
    """

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        selector: Optional[str] = None,
        depth: int = 0,
    ):
        self.target = target
        self.selector = selector
        self.depth = depth
        context = []
        if target:
            context.append(f"target={target}")
        if selector:
            context.append(f"selector={selector}")
        context.append(f"depth={depth}")
        super().__init__(f"{message} ({', '.join(context)})")


class BatchDecodeError(DecodeError):
    """Raised when a recognized batch payload is structurally invalid."""
    pass


class DisallowedBatchCallError(BatchDecodeError):
    """Raised when an allow-listed batching contract is called with anything but a known entry point."""
    pass


class DecodeDepthExceededError(DecodeError):
    """Raised when batches are nested deeper than the decoder allows."""
    pass


class NestedApprovalError(VerificationError):
    """Raised when the outer approveHash call does not approve the inner transaction."""
    pass
