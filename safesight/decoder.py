"""
Allow-listed calldata decoder.

Resolves the called function from the selector registry, decodes its
arguments, annotates known addresses and token amounts, and expands the two
supported batch formats into sub-calls:

  * Safe MultiSend: packed frames ``operation:uint8 | to:20 | value:uint256 | dataLength:uint256 | data``
  * Multicall3:     ``aggregate3`` / ``aggregate3Value`` arrays of call structs

Unknown targets and selectors decode to raw data. Allow-listed batching
contracts are strict: any call that is not a recognized entry point raises,
so a batch can never be shown with sub-calls missing.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from .errors import BatchDecodeError, DecodeDepthExceededError, DisallowedBatchCallError
from .formatting import annotate_address, format_decimals
from .models import UNKNOWN_FUNCTION, CallNode
from .registry import (
    DEFAULT_REGISTRIES,
    MULTISEND_KIND,
    TOKEN_FUNCTIONS,
    BatchingContract,
    FunctionInfo,
    Param,
    Registries,
)

logger = logging.getLogger(__name__)

MAX_DECODE_DEPTH = 16
SELECTOR_SIZE = 4
MULTISEND_HEADER_SIZE = 1 + 20 + 32 + 32

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


def hex_to_bytes(data: Any) -> Optional[bytes]:
    """``0x``-prefixed (or bare) even-length hex -> bytes; None when it is not valid hex."""
    if not isinstance(data, str):
        return None
    h = data[2:] if data[:2] in ("0x", "0X") else data
    if len(h) % 2 or not _HEX_RE.match(h):
        return None
    return bytes.fromhex(h)


# ---------------------------- MultiSend parser ----------------------------

@dataclass(frozen=True)
class MultiSendRecord:
    operation: int
    to: str
    value: int
    data: bytes


def parse_multisend_bytes(blob: bytes) -> Tuple[List[MultiSendRecord], int]:
    """
    Split a packed MultiSend payload into records.

    Parsing stops at the first incomplete header or a record whose data would
    run past the end of the buffer. Returns the records and the number of
    trailing bytes that were left unparsed.
    """
    records = []
    i = 0
    n = len(blob)
    while i + MULTISEND_HEADER_SIZE <= n:
        op = blob[i]
        to = to_checksum_address("0x" + blob[i + 1:i + 21].hex())
        value = int.from_bytes(blob[i + 21:i + 53], "big")
        data_len = int.from_bytes(blob[i + 53:i + 85], "big")
        start = i + MULTISEND_HEADER_SIZE
        if data_len > n - start:
            break
        records.append(MultiSendRecord(op, to, value, blob[start:start + data_len]))
        i = start + data_len
    return records, n - i


# ---------------------------- Decoder ----------------------------

class CalldataDecoder:
    """Decodes calldata into a CallNode tree using a fixed set of registries."""

    def __init__(self, registries: Registries = DEFAULT_REGISTRIES, max_depth: int = MAX_DECODE_DEPTH):
        self.registries = registries
        self.max_depth = max_depth

    def decode(self, target: str, calldata: str, chain_id: int, delegate_call: bool = False) -> CallNode:
        return self._decode(target, calldata, chain_id, delegate_call, 0)

    def _decode(self, target: str, calldata: str, chain_id: int, delegate_call: bool, depth: int) -> CallNode:
        if depth > self.max_depth:
            raise DecodeDepthExceededError(
                f"batch nesting exceeds {self.max_depth} levels", target=target, depth=depth)

        contract = self.registries.contracts.lookup(target, chain_id)
        target_name = contract.name if contract else None
        batching = self.registries.batching.lookup(target, chain_id)

        def raw(function_name: str = UNKNOWN_FUNCTION) -> CallNode:
            return CallNode(target=target, function_name=function_name, target_name=target_name,
                            raw_data=calldata, delegate_call=delegate_call)

        data = hex_to_bytes(calldata)
        if data is None or len(data) < SELECTOR_SIZE:
            if batching is not None:
                raise DisallowedBatchCallError(
                    "batching contract called without a function selector", target=target, depth=depth)
            return raw()

        selector = "0x" + data[:SELECTOR_SIZE].hex()
        fn = self.registries.functions.lookup(selector)
        if fn is None:
            if batching is not None:
                raise DisallowedBatchCallError(
                    "unrecognized function on batching contract", target=target, selector=selector, depth=depth)
            return raw()
        logger.debug("selector %s on %s resolved to %s", selector, target, fn.canonical)
        if batching is not None and not batching.accepts(fn.name):
            raise DisallowedBatchCallError(
                f"{fn.canonical} is not a {batching.kind} entry point", target=target, selector=selector, depth=depth)

        try:
            values = fn.decode_arguments(data[SELECTOR_SIZE:])
        except (DecodingError, ValueError, OverflowError) as exc:
            if batching is not None:
                raise BatchDecodeError(
                    f"could not decode {fn.name} arguments: {exc}", target=target, selector=selector, depth=depth
                ) from exc
            logger.warning("falling back to raw data for %s on %s: %s", fn.canonical, target, exc)
            return raw(fn.name)

        parsed = self._format_arguments(fn, values, chain_id)
        if contract is not None and contract.decimals > 0 and fn.name in TOKEN_FUNCTIONS:
            for param, value in zip(fn.params, values):
                if param.name == "amount":
                    parsed["amount"] = format_decimals(value, contract.decimals)

        sub_calls: Sequence[CallNode] = ()
        if batching is not None:
            sub_calls = self._expand_batch(batching, fn, values, target, selector, chain_id, depth)

        return CallNode(
            target=target,
            function_name=fn.name,
            target_name=target_name,
            parsed_arguments=parsed,
            sub_calls=tuple(sub_calls),
            delegate_call=delegate_call,
        )

    # ---------------------------- arguments ----------------------------

    def _format_arguments(self, fn: FunctionInfo, values: Sequence[Any], chain_id: int) -> dict:
        return {p.name: self._format_value(p, v, chain_id) for p, v in zip(fn.params, values)}

    def _format_value(self, param: Param, value: Any, chain_id: int) -> Any:
        if param.is_array:
            element = param.element()
            return [self._format_value(element, v, chain_id) for v in value]
        if param.components:
            return {c.name: self._format_value(c, v, chain_id) for c, v in zip(param.components, value)}
        if param.type == "address":
            address = to_checksum_address(value)
            return annotate_address(address, self.registries.contracts.lookup(address, chain_id))
        if isinstance(value, (bytes, bytearray)):
            return "0x" + bytes(value).hex()
        return value

    # ---------------------------- batches ----------------------------

    def _expand_batch(
        self,
        batching: BatchingContract,
        fn: FunctionInfo,
        values: Sequence[Any],
        target: str,
        selector: str,
        chain_id: int,
        depth: int,
    ) -> List[CallNode]:
        sub_calls = []
        if batching.kind == MULTISEND_KIND:
            (blob,) = values
            records, leftover = parse_multisend_bytes(blob)
            if leftover:
                logger.warning("ignoring %d trailing bytes in multiSend payload to %s", leftover, target)
            for i, record in enumerate(records):
                if record.operation not in (0, 1):
                    raise BatchDecodeError(
                        f"multiSend record {i} has invalid operation {record.operation}",
                        target=target, selector=selector, depth=depth)
                sub_calls.append(self._decode(
                    record.to, "0x" + record.data.hex(), chain_id, record.operation == 1, depth + 1))
        else:
            # (target, allowFailure, [value,] callData)
            (calls,) = values
            for call in calls:
                sub_calls.append(self._decode(
                    to_checksum_address(call[0]), "0x" + bytes(call[-1]).hex(), chain_id, False, depth + 1))

        logger.debug("expanded %s at %s into %d sub-calls (depth %d)", fn.name, target, len(sub_calls), depth)
        return sub_calls


def decode_calldata(
    target: str, calldata: str, chain_id: int, registries: Registries = DEFAULT_REGISTRIES
) -> CallNode:
    return CalldataDecoder(registries).decode(target, calldata, chain_id)
