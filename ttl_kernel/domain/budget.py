"""
Budget domain types (``ttl_kernel.domain.budget``).

Responsibility
--------------
Frozen value objects for the yearly team-coach budget and the planned
ledger effects the workflow engine hands to ``BudgetLedger``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``available`` has no floor: a negative value is the over-commitment
  signal, not an error.
* All monetary fields use ``Decimal`` -- never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


@dataclass(frozen=True)
class Budget:
    """Yearly budget of one team coach."""

    id: UUID
    team_coach_email: str
    year: int
    total: Decimal
    available: Decimal
    team_coach_name: str | None = None
    version: int = 1

    @property
    def used(self) -> Decimal:
        return self.total - self.available


def is_over_budget(budget: Budget, request_cost: Decimal) -> bool:
    """True when the budget cannot cover ``request_cost``."""
    return budget.available < request_cost


@dataclass(frozen=True)
class BudgetCheck:
    """Advisory over-budget result shown before/at approval time."""

    budget_id: UUID
    team_coach_email: str
    year: int
    available: Decimal
    request_cost: Decimal
    over_budget: bool

    @property
    def shortfall(self) -> Decimal:
        if not self.over_budget:
            return Decimal("0")
        return self.request_cost - self.available


def check_budget(budget: Budget, request_cost: Decimal) -> BudgetCheck:
    return BudgetCheck(
        budget_id=budget.id,
        team_coach_email=budget.team_coach_email,
        year=budget.year,
        available=budget.available,
        request_cost=request_cost,
        over_budget=is_over_budget(budget, request_cost),
    )


class BudgetEffectKind(str, Enum):
    DEDUCT = "deduct"
    RESTORE = "restore"


@dataclass(frozen=True)
class BudgetEffect:
    """A ledger mutation planned by the engine, applied by the caller."""

    kind: BudgetEffectKind
    budget_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    """Aggregate over several budgets (team dashboard figures)."""

    year: int
    total: Decimal
    available: Decimal
    budget_count: int

    @property
    def used(self) -> Decimal:
        return self.total - self.available
