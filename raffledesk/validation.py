"""Input normalisation and validation for public submissions."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import InvalidInput

CONTACT_PATTERN = re.compile(r"^\(\d{2}\) \d{5}-\d{4}$")
_NON_DIGITS = re.compile(r"\D")

# Purchase amounts are stored as Numeric(12, 2).
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")


def canonical_contact(value: Any) -> str:
    """Return ``value`` in ``(DD) DDDDD-DDDD`` form when it carries 11 digits.

    Inputs such as ``"11987654321"`` or ``"+(11) 98765 4321"`` are reformatted;
    anything that does not have exactly eleven digits is returned stripped so
    that :func:`validate_contact` can reject it.
    """

    if not isinstance(value, str):
        raise InvalidInput("contact must be a string", field="contact")
    stripped = value.strip()
    digits = _NON_DIGITS.sub("", stripped)
    if len(digits) != 11:
        return stripped
    return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"


def validate_contact(contact: str) -> str:
    if not CONTACT_PATTERN.match(contact):
        raise InvalidInput(
            "contact must use the format (DD) DDDDD-DDDD", field="contact"
        )
    return contact


def validate_name(name: Any) -> str:
    """Collapse whitespace and require at least two words."""

    if not isinstance(name, str):
        raise InvalidInput("name must be a string", field="name")
    words = name.split()
    if len(words) < 2:
        raise InvalidInput("name must contain first and last name", field="name")
    return " ".join(words)


def validate_number(number: Any, pool_size: int) -> int:
    # bool is an int subclass; True must not register ticket 1.
    if isinstance(number, bool) or not isinstance(number, int):
        raise InvalidInput("number must be an integer", field="number")
    if not 1 <= number <= pool_size:
        raise InvalidInput(
            f"number must be between 1 and {pool_size}", field="number"
        )
    return number


def parse_amount(value: Any) -> Decimal:
    """Parse a purchase amount into a positive :class:`Decimal` in cents.

    The result is exactly what the database stores, so ticket counts derived
    from it match the persisted row. More than two decimal places or more than
    ten integer digits are rejected rather than rounded.
    """

    if isinstance(value, bool):
        raise InvalidInput("amount must be a number", field="purchase_amount")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInput(
            "amount must be a number", field="purchase_amount"
        ) from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidInput(
            "amount must be a positive number", field="purchase_amount"
        )
    if amount > MAX_AMOUNT:
        raise InvalidInput(
            f"amount must not exceed {MAX_AMOUNT}", field="purchase_amount"
        )
    if amount != amount.quantize(CENT):
        raise InvalidInput(
            "amount must have at most two decimal places", field="purchase_amount"
        )
    return amount.quantize(CENT)


__all__ = [
    "CONTACT_PATTERN",
    "canonical_contact",
    "parse_amount",
    "validate_contact",
    "validate_name",
    "validate_number",
]
