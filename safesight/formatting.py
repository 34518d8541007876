"""
Display helpers: token amount rescaling and known-address annotation.

Cosmetic only; nothing here feeds into a hash.
"""
from typing import Optional

from .registry import ContractInfo


def add_commas(digits: str) -> str:
    """Group a digit string in threes: ``"1234567"`` -> ``"1,234,567"``."""
    if len(digits) <= 3:
        return digits
    head = len(digits) % 3 or 3
    groups = [digits[:head]] + [digits[i:i + 3] for i in range(head, len(digits), 3)]
    return ",".join(groups)


def format_decimals(amount: int, decimals: int) -> str:
    """
    Render a base-unit integer as a decimal string with thousands separators.

    Trailing zero fraction digits are trimmed; an all-zero fraction keeps two
    places (``1000000, 6`` -> ``"1.00"``).
    """
    if amount < 0:
        return "-" + format_decimals(-amount, decimals)
    digits = str(amount)
    if decimals <= 0:
        return add_commas(digits)
    digits = digits.rjust(decimals + 1, "0")
    int_part, frac_part = digits[:-decimals], digits[-decimals:]
    frac_part = frac_part.rstrip("0")
    if not frac_part:
        frac_part = "00"
    return f"{add_commas(int_part)}.{frac_part}"


def format_ether(value_wei: int) -> str:
    return format_decimals(value_wei, 18) + " ETH"


def annotate_address(address: str, info: Optional[ContractInfo]) -> str:
    if info is None:
        return address
    return f"{address} ({info.name} 🔍)"
