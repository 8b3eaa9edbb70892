"""Wallet address and amount checks shared by the parser and wallet collaborators."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional, Union

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
MAX_AMOUNT = Decimal("1000000")

Number = Union[int, float, Decimal]


def is_valid_address(address: object) -> bool:
    if not isinstance(address, str):
        return False
    return ADDRESS_RE.match(address) is not None


def is_valid_amount(amount: object, max_amount: Optional[Number] = MAX_AMOUNT) -> bool:
    """True for a positive number not above ``max_amount`` (unbounded when None)."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        return False
    value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    if not value.is_finite() or value <= 0:
        return False
    if max_amount is not None and value > Decimal(str(max_amount)):
        return False
    return True
