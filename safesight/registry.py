"""
Static lookup tables: known contracts per chain, known function selectors and
the batching-contract allow-list.

Everything here is built once at import and exposed through read-only
mappings; a custom ``Registries`` bundle can be passed to the decoder and the
verifier instead of ``DEFAULT_REGISTRIES``.
"""
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak

logger = logging.getLogger(__name__)

# ---------------------------- Chains & addresses ----------------------------

MAINNET_CHAIN_ID = 1
OP_MAINNET_CHAIN_ID = 10

CHAIN_NAMES: Mapping[int, str] = MappingProxyType({
    1: "Ethereum",
    10: "OP Mainnet",
    8453: "Base",
    42161: "Arbitrum One",
    11155111: "Sepolia",
})

SAFE_MULTISEND_ADDRESS = "0xA1dabEF33b3B82c7814B6D82A79e50F4AC44102B"
SAFE_MULTISEND_CALL_ONLY_141 = "0x9641d764fc13c8B624c04430C7356C1C7C8102e2"
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
USDC_MAINNET_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
OP_TOKEN_ADDRESS = "0x4200000000000000000000000000000000000042"
SUPERFLUID_OP = "0x1828Bff08BD244F7990edDCd9B19cc654b33cDB4"
OPTIMISM_GOVERNOR = "0xcDF27F107725988f2261Ce2256bDfCdE8B382B10"
OP_GRANTS1 = "0x2501c477D0A35545a387Aa4A3EEe4292A9a8B3F0"
OP_GRANTS2 = "0x19793c7824Be70ec58BB673CA42D2779d12581BE"

MULTISEND_KIND = "multisend"
MULTICALL3_KIND = "multicall3"

# Entry points each batching contract kind is allowed to receive.
BATCH_ENTRY_POINTS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    MULTISEND_KIND: frozenset({"multiSend"}),
    MULTICALL3_KIND: frozenset({"aggregate3", "aggregate3Value"}),
})

# Functions whose `amount` argument is rescaled by the token's decimals.
TOKEN_FUNCTIONS: FrozenSet[str] = frozenset({
    "transfer",
    "transferFrom",
    "approve",
    "increaseAllowance",
    "decreaseAllowance",
})

KNOWN_SIGNATURES: Tuple[str, ...] = (
    # ERC-20
    "transfer(address to,uint256 amount)",
    "transferFrom(address from,address to,uint256 amount)",
    "approve(address spender,uint256 amount)",
    "increaseAllowance(address spender,uint256 amount)",
    "decreaseAllowance(address spender,uint256 amount)",
    "permit(address owner,address spender,uint256 value,uint256 deadline,uint8 v,bytes32 r,bytes32 s)",

    # ERC-721 / ERC-1155
    "setApprovalForAll(address operator,bool approved)",
    "safeTransferFrom(address from,address to,uint256 tokenId)",
    "safeTransferFrom(address from,address to,uint256 tokenId,bytes data)",

    # Safe
    "approveHash(bytes32 hashToApprove)",
    "execTransaction(address to,uint256 value,bytes data,uint8 operation,uint256 safeTxGas,uint256 baseGas,"
    "uint256 gasPrice,address gasToken,address refundReceiver,bytes signatures)",
    "addOwnerWithThreshold(address owner,uint256 _threshold)",
    "removeOwner(address prevOwner,address owner,uint256 _threshold)",
    "swapOwner(address prevOwner,address oldOwner,address newOwner)",
    "changeThreshold(uint256 _threshold)",
    "enableModule(address module)",
    "disableModule(address prevModule,address module)",
    "setGuard(address guard)",
    "setFallbackHandler(address handler)",

    # Batching
    "multiSend(bytes transactions)",
    "aggregate3((address target,bool allowFailure,bytes callData)[] calls)",
    "aggregate3Value((address target,bool allowFailure,uint256 value,bytes callData)[] calls)",

    # Superfluid & governance
    "callAgreement(address agreementClass,bytes callData,bytes userData)",
    "createVestingScheduleFromAmountAndDuration(address superToken,address receiver,uint256 totalAmount,"
    "uint32 totalDuration,uint32 startDate,uint32 cliffPeriod,uint32 claimPeriod)",
    "propose(address[] targets,uint256[] values,bytes[] calldatas,string description,uint8 proposalType)",
)

# ---------------------------- Signature parsing ----------------------------

_TUPLE_TAIL = re.compile(r"^((?:\[\d*\])*)\s*(\w*)$")


@dataclass(frozen=True)
class Param:
    """One ABI parameter. ``type`` is canonical (names stripped, tuples expanded)."""
    name: str
    type: str
    components: Tuple["Param", ...] = ()

    @property
    def base_type(self) -> str:
        """Type without array suffixes: ``(address,bool)[]`` -> ``(address,bool)``."""
        return re.sub(r"(\[\d*\])+$", "", self.type)

    @property
    def is_array(self) -> bool:
        return self.type.endswith("]")

    def element(self) -> "Param":
        """Parameter describing one element of this array."""
        return Param(self.name, self.type[:self.type.rindex("[")], self.components)


def _split_top_level(text: str) -> List[str]:
    parts, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    tail = text[start:]
    if tail.strip() or parts:
        parts.append(tail)
    return parts


def _parse_param(text: str, index: int) -> Param:
    text = text.strip()
    if text.startswith("("):
        depth = 0
        for close, ch in enumerate(text):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    break
        else:
            raise ValueError(f"unbalanced tuple in parameter {text!r}")
        components = tuple(_parse_param(p, i) for i, p in enumerate(_split_top_level(text[1:close])))
        m = _TUPLE_TAIL.match(text[close + 1:].strip())
        if not m:
            raise ValueError(f"bad tuple parameter {text!r}")
        suffix, name = m.groups()
        canonical = "(" + ",".join(c.type for c in components) + ")" + suffix
        return Param(name or f"arg{index}", canonical, components)

    parts = text.split()
    if not parts or len(parts) > 2:
        raise ValueError(f"bad parameter {text!r}")
    return Param(parts[1] if len(parts) == 2 else f"arg{index}", parts[0])


@dataclass(frozen=True)
class FunctionInfo:
    name: str
    signature: str
    canonical: str
    selector: str
    params: Tuple[Param, ...]

    @classmethod
    def from_signature(cls, signature: str) -> "FunctionInfo":
        """Build from a human signature such as ``transfer(address to,uint256 amount)``."""
        signature = signature.strip()
        open_idx = signature.index("(")
        if not signature.endswith(")"):
            raise ValueError(f"bad function signature {signature!r}")
        name = signature[:open_idx].strip()
        params = tuple(_parse_param(p, i) for i, p in enumerate(_split_top_level(signature[open_idx + 1:-1])))
        canonical = f"{name}({','.join(p.type for p in params)})"
        selector = "0x" + keccak(text=canonical)[:4].hex()
        return cls(name=name, signature=signature, canonical=canonical, selector=selector, params=params)

    @property
    def types(self) -> List[str]:
        return [p.type for p in self.params]

    def decode_arguments(self, payload: bytes) -> tuple:
        return tuple(abi_decode(self.types, payload))

    def encode_arguments(self, values: Sequence) -> bytes:
        return abi_encode(self.types, list(values))

    def encode_call(self, values: Sequence) -> bytes:
        return bytes.fromhex(self.selector[2:]) + self.encode_arguments(values)


# ---------------------------- Registries ----------------------------

@dataclass(frozen=True)
class ContractInfo:
    name: str
    decimals: int = 0


@dataclass(frozen=True)
class BatchingContract:
    kind: str
    entry_points: FrozenSet[str]

    def accepts(self, function_name: str) -> bool:
        return function_name in self.entry_points


def _freeze_by_chain(table: Mapping[int, Mapping[str, object]]) -> Mapping[int, Mapping[str, object]]:
    return MappingProxyType({
        int(chain): MappingProxyType({addr.lower(): info for addr, info in entries.items()})
        for chain, entries in table.items()
    })


class ContractRegistry:
    """Chain-scoped, case-insensitive address -> ContractInfo lookup."""

    def __init__(self, contracts: Mapping[int, Mapping[str, ContractInfo]]):
        self._contracts = _freeze_by_chain(contracts)

    def lookup(self, address: Optional[str], chain_id: int) -> Optional[ContractInfo]:
        entries = self._contracts.get(chain_id)
        if not entries or not address:
            return None
        return entries.get(address.lower())


class BatchingRegistry:
    """Per-chain allow-list of contracts whose calls are expanded into sub-calls."""

    def __init__(self, contracts: Mapping[int, Mapping[str, str]]):
        self._contracts = _freeze_by_chain({
            chain: {addr: BatchingContract(kind, BATCH_ENTRY_POINTS[kind]) for addr, kind in entries.items()}
            for chain, entries in contracts.items()
        })

    def lookup(self, address: Optional[str], chain_id: int) -> Optional[BatchingContract]:
        entries = self._contracts.get(chain_id)
        if not entries or not address:
            return None
        return entries.get(address.lower())


class FunctionRegistry:
    """4-byte selector -> FunctionInfo."""

    def __init__(self, functions: Iterable[FunctionInfo]):
        table: Dict[str, FunctionInfo] = {}
        for fn in functions:
            if fn.selector in table and table[fn.selector].canonical != fn.canonical:
                raise ValueError(f"selector collision {fn.selector}: {table[fn.selector].canonical} vs {fn.canonical}")
            table[fn.selector] = fn
        self._functions = MappingProxyType(table)

    @classmethod
    def from_signatures(cls, signatures: Iterable[str]) -> "FunctionRegistry":
        return cls(FunctionInfo.from_signature(sig) for sig in signatures)

    def lookup(self, selector: str) -> Optional[FunctionInfo]:
        sel = selector.lower()
        if not sel.startswith("0x"):
            sel = "0x" + sel
        fn = self._functions.get(sel)
        if fn is None:
            logger.debug("selector %s not in function registry", sel)
        return fn

    def by_name(self, name: str) -> List[FunctionInfo]:
        return [fn for fn in self._functions.values() if fn.name == name]

    def __iter__(self) -> Iterator[FunctionInfo]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, selector: str) -> bool:
        return self.lookup(selector) is not None


@dataclass(frozen=True)
class Registries:
    contracts: ContractRegistry
    functions: FunctionRegistry
    batching: BatchingRegistry
    chain_names: Mapping[int, str] = field(default_factory=lambda: CHAIN_NAMES)


KNOWN_CONTRACTS = {
    MAINNET_CHAIN_ID: {
        SAFE_MULTISEND_ADDRESS: ContractInfo("GNOSIS SAFE MULTISEND"),
        MULTICALL3_ADDRESS: ContractInfo("MULTICALL3"),
        USDC_MAINNET_ADDRESS: ContractInfo("USDC", 6),
    },
    OP_MAINNET_CHAIN_ID: {
        SAFE_MULTISEND_ADDRESS: ContractInfo("GNOSIS SAFE MULTISEND CALL ONLY"),
        SAFE_MULTISEND_CALL_ONLY_141: ContractInfo("GNOSIS SAFE MULTISEND CALL ONLY"),
        MULTICALL3_ADDRESS: ContractInfo("MULTICALL3"),
        OP_TOKEN_ADDRESS: ContractInfo("OP TOKEN", 18),
        SUPERFLUID_OP: ContractInfo("SUPERFLUID OP", 18),
        OPTIMISM_GOVERNOR: ContractInfo("OPTIMISM GOVERNOR"),
        OP_GRANTS1: ContractInfo("OP GRANTS 1 (3F0)"),
        OP_GRANTS2: ContractInfo("OP GRANTS 2 (1BE)"),
    },
}

BATCHING_CONTRACTS = {
    MAINNET_CHAIN_ID: {
        SAFE_MULTISEND_ADDRESS: MULTISEND_KIND,
        MULTICALL3_ADDRESS: MULTICALL3_KIND,
    },
    OP_MAINNET_CHAIN_ID: {
        SAFE_MULTISEND_ADDRESS: MULTISEND_KIND,
        SAFE_MULTISEND_CALL_ONLY_141: MULTISEND_KIND,
        MULTICALL3_ADDRESS: MULTICALL3_KIND,
    },
}

DEFAULT_REGISTRIES = Registries(
    contracts=ContractRegistry(KNOWN_CONTRACTS),
    functions=FunctionRegistry.from_signatures(KNOWN_SIGNATURES),
    batching=BatchingRegistry(BATCHING_CONTRACTS),
)


def get_known_contract(address: Optional[str], chain_id: int) -> Optional[ContractInfo]:
    return DEFAULT_REGISTRIES.contracts.lookup(address, chain_id)
