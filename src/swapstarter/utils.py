from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext

from eth_hash.auto import keccak

ZERO_ADDRESS = "0x" + "0" * 40

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def keccak256(data: bytes) -> bytes:
    # NOTE: Keccak-256 != SHA3-256 (NIST). Never use hashlib.sha3_256 here.
    return keccak(data)


def to_checksum_address(address: str) -> str:
    """Convert an address to EIP-55 checksummed format."""
    if not _ADDRESS_RE.match(address):
        raise ValueError(f"Not a 20-byte hex address: {address!r}")
    addr = address[2:].lower()
    addr_hash = keccak256(addr.encode("utf-8")).hex()
    result = "0x"
    for i, c in enumerate(addr):
        if c in "abcdef":
            result += c.upper() if int(addr_hash[i], 16) >= 8 else c
        else:
            result += c
    return result


def is_address(value: object) -> bool:
    """True for a 0x-prefixed 20-byte hex string.

    All-lowercase and all-uppercase forms carry no checksum and are
    accepted as-is; mixed case must match EIP-55 exactly.
    """
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        return False
    body = value[2:]
    if body == body.lower() or body == body.upper():
        return True
    return to_checksum_address(value) == value


def same_address(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a is b
    return a.lower() == b.lower()


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def format_units(raw: int, decimals: int) -> str:
    """Render an integer amount as a decimal string without float rounding."""
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10 ** decimals)
    if decimals == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_str}"


def parse_units(value: str, decimals: int) -> int:
    """Parse a human decimal string into an integer amount of base units.

    Raises:
        ValueError: If the string is not a number or carries more
            fractional digits than ``decimals`` allows.
    """
    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a decimal amount: {value!r}")
    with localcontext() as ctx:
        ctx.prec = max(78, len(amount.as_tuple().digits) + decimals)
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{value} has more than {decimals} decimal places")
        return int(scaled)
