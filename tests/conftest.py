"""
Shared fixtures: reference transactions and small calldata builders.
"""
import pytest
from eth_utils import to_checksum_address

from safesight.models import ZERO_ADDRESS, Operation, SafeTransaction
from safesight.registry import DEFAULT_REGISTRIES

MAINNET_SAFE = to_checksum_address("0x847b5c174615b1b7fdf770882256e2d3e95b9d92")
SEPOLIA_SAFE = to_checksum_address("0xf64bc17485f0b4ea5f06a96514182fc4cb561977")
MULTICALL3 = "0xcA11bde05977b3631167028862bE2a173976CA11"

# aggregate3([(0x5a0aae..., false, approveHash(0x493ad6...))])
MAINNET_AGGREGATE3_DATA = (
    "0x82ad56cb"
    "0000000000000000000000000000000000000000000000000000000000000020"
    "0000000000000000000000000000000000000000000000000000000000000001"
    "0000000000000000000000000000000000000000000000000000000000000020"
    "0000000000000000000000005a0aae59d09fccbddb6c6cceb07b7279367c3d2a"
    "0000000000000000000000000000000000000000000000000000000000000000"
    "0000000000000000000000000000000000000000000000000000000000000060"
    "0000000000000000000000000000000000000000000000000000000000000024"
    "d4d9bdcd493ad64b8f788ed9808c7bf527a10a017d9f263bb7889868ce18b451"
    "d685762d00000000000000000000000000000000000000000000000000000000"
)

SEPOLIA_AGGREGATE3_DATA = (
    "0x82ad56cb"
    "0000000000000000000000000000000000000000000000000000000000000020"
    "0000000000000000000000000000000000000000000000000000000000000001"
    "0000000000000000000000000000000000000000000000000000000000000020"
    "0000000000000000000000001eb2ffc903729a0f03966b917003800b145f56e2"
    "0000000000000000000000000000000000000000000000000000000000000000"
    "0000000000000000000000000000000000000000000000000000000000000060"
    "0000000000000000000000000000000000000000000000000000000000000024"
    "d4d9bdcd076db0a8758739afdd098a3d9fed5147eb55f363cd85167c1b3e5f33"
    "4d317f3e00000000000000000000000000000000000000000000000000000000"
)


def function(name: str):
    """The single registered FunctionInfo called ``name``."""
    (fn,) = DEFAULT_REGISTRIES.functions.by_name(name)
    return fn


def calldata(name: str, *args) -> str:
    return "0x" + function(name).encode_call(list(args)).hex()


def pack_multisend(records) -> bytes:
    """records: iterable of (operation, to, value, data_bytes)."""
    out = b""
    for op, to, value, data in records:
        out += bytes([op]) + bytes.fromhex(to[2:]) + value.to_bytes(32, "big") + len(data).to_bytes(32, "big") + data
    return out


@pytest.fixture
def mainnet_tx():
    return SafeTransaction(
        safe=MAINNET_SAFE,
        safe_version="1.3.0",
        chain=1,
        to=MULTICALL3,
        value=0,
        data=MAINNET_AGGREGATE3_DATA,
        operation=Operation.DELEGATE_CALL,
        gas_token=ZERO_ADDRESS,
        refund_receiver=ZERO_ADDRESS,
        nonce=15,
    )


@pytest.fixture
def sepolia_tx():
    return SafeTransaction(
        safe=SEPOLIA_SAFE,
        safe_version="1.3.0",
        chain=11155111,
        to=MULTICALL3,
        value=0,
        data=SEPOLIA_AGGREGATE3_DATA,
        operation=Operation.DELEGATE_CALL,
        nonce=30,
    )


@pytest.fixture
def mainnet_record():
    return {
        "safe": "eth:" + MAINNET_SAFE,
        "safe_version": "1.3.0",
        "chain": 1,
        "to": "eth:" + MULTICALL3,
        "value": "0",
        "data": MAINNET_AGGREGATE3_DATA,
        "operation": 1,
        "safe_tx_gas": 0,
        "base_gas": 0,
        "gas_price": "0",
        "gas_token": ZERO_ADDRESS,
        "refund_receiver": ZERO_ADDRESS,
        "nonce": 15,
    }
