"""
Item cost engine (``ttl_engines.item_costs``).

Responsibility
--------------
Pure calculation of the yearly cost of a software licence item from its
unit price, licence type (group/individual), licensing period and the
users who need it.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO clock reads.

Invariants enforced
-------------------
* Monthly prices are annualised (x12); one-time and yearly prices are not.
* Individual licences multiply by the number of distinct named users;
  group licences ignore the user list.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from ttl_engines.tracer import traced_engine
from ttl_kernel.domain.request import LicenseType, LicensingPeriod

_PERIOD_FACTOR: dict[LicensingPeriod, Decimal] = {
    LicensingPeriod.MONTHLY: Decimal("12"),
    LicensingPeriod.YEARLY: Decimal("1"),
    LicensingPeriod.ONE_TIME: Decimal("1"),
}


def normalize_license_users(users: str | Iterable[str] | None) -> tuple[str, ...]:
    """Accept a comma-separated string or an iterable of names.

    A single list entry that itself contains commas is split as well
    (older records stored all names in one string).
    """
    if users is None:
        return ()
    if isinstance(users, str):
        raw = [users]
    else:
        raw = list(users)
    names: list[str] = []
    for entry in raw:
        names.extend(part.strip() for part in str(entry).split(","))
    return tuple(name for name in names if name)


@traced_engine(
    "item_costs", "1.0",
    fingerprint_fields=("unit_cost", "license_type", "licensing", "users"),
)
def calculate_license_cost(
    *,
    unit_cost: Decimal,
    license_type: LicenseType,
    licensing: LicensingPeriod,
    users: tuple[str, ...] = (),
) -> Decimal:
    """Yearly cost of a software licence item."""
    cost = unit_cost * _PERIOD_FACTOR[licensing]
    if license_type == LicenseType.INDIVIDUAL:
        cost = cost * len(users)
    return cost
