"""
Item input validation (``ttl_kernel.domain.validation``).

Cost and link checks applied to upstream item data before it reaches a
request.  Pure functions; they raise ``ValidationError`` subclasses.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from ttl_kernel.exceptions import InvalidCostError, InvalidLinkError

_COST_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
_LINK_PATTERN = re.compile(
    r"https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)"
)


def validate_cost(value: object) -> Decimal:
    """Parse a cost given as a number or numeric string.

    Raises:
        InvalidCostError: not numeric, not finite, or negative.
    """
    if isinstance(value, bool):
        raise InvalidCostError(value, "must be a number or a numeric string")
    if isinstance(value, (int, Decimal)):
        cost = Decimal(value)
    elif isinstance(value, float):
        cost = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not _COST_PATTERN.match(text):
            raise InvalidCostError(
                value, "must contain only numbers and an optional decimal point",
            )
        try:
            cost = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidCostError(value, "must be a valid number") from exc
    else:
        raise InvalidCostError(value, "must be a number or a numeric string")

    if not cost.is_finite():
        raise InvalidCostError(value, "must be a valid number")
    if cost < 0:
        raise InvalidCostError(value, "cannot be negative")
    return cost


def validate_link(link: object) -> str:
    """Return the link when it contains an http(s) URL."""
    if not isinstance(link, str) or not _LINK_PATTERN.search(link):
        raise InvalidLinkError(link)
    return link.strip()
