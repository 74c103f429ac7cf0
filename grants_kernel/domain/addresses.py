"""
Address helpers.

Addresses are opaque strings (an account, a wallet, a custodian id).  The
only structural rule the registry enforces is that funds are never sent to
an empty or zero address: ``""``, ``"0"``, or ``0x`` followed only by zeros.
"""

import re

_ZERO_ADDRESS = re.compile(r"^(0x)?0+$", re.IGNORECASE)


def normalize_address(address: str) -> str:
    """Strip surrounding whitespace."""
    return address.strip()


def is_zero_address(address: str | None) -> bool:
    """True for None, empty, or all-zero addresses."""
    if address is None:
        return True
    normalized = normalize_address(address)
    return normalized == "" or normalized.lower() == "0x" or bool(_ZERO_ADDRESS.match(normalized))
