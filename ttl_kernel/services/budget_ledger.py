"""
BudgetLedger -- yearly team-coach budgets and their deduct/restore operations.

Responsibility:
    Looks up the budget of a team coach for a year and moves money in and
    out of its ``available`` amount when requests are approved or denied.

Architecture position:
    Kernel > Services -- imperative shell.  Called by ``WorkflowExecutor``
    with the ``BudgetEffect`` values planned by the workflow engine.

Invariants enforced:
    - No lost updates: deduct/restore are a single
      ``UPDATE ... SET available = available -/+ :amount, version = version + 1``
      statement, so two concurrent approvals against the same budget both
      land.  There is no read-modify-write in Python.
    - Optional optimistic check: with ``expected_version`` the UPDATE is
      conditional and a lost race raises ``ConflictError``.
    - No floor: ``available`` may go negative (over-commitment signal).

Failure modes:
    - BudgetNotFoundError: deduct/restore/get against an unknown budget id.
    - ConflictError: ``expected_version`` did not match.
    - ValueError: negative amount.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ttl_kernel.domain.budget import (
    Budget,
    BudgetEffect,
    BudgetEffectKind,
    is_over_budget,
)
from ttl_kernel.exceptions import BudgetNotFoundError, ConflictError
from ttl_kernel.logging_config import get_logger
from ttl_kernel.models.budget import BudgetModel
from ttl_kernel.services.base import BaseService

logger = get_logger("services.budget_ledger")


class BudgetLedger(BaseService):
    """
    Deduct/restore operations over ``ttl_budgets``.

    Contract:
        Every mutating method flushes inside the caller's transaction and
        returns a fresh ``Budget`` snapshot read back after the UPDATE.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_available(self, team_coach_email: str, year: int) -> Budget | None:
        """Budget of ``team_coach_email`` for ``year``, or None if none exists."""
        model = self.session.execute(
            select(BudgetModel).where(
                BudgetModel.team_coach_email == team_coach_email,
                BudgetModel.year == year,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def get(self, budget_id: UUID) -> Budget:
        """Budget by id.

        Raises:
            BudgetNotFoundError: no such budget.
        """
        return self._reload(budget_id)

    @staticmethod
    def is_over_budget(budget: Budget, request_cost: Decimal) -> bool:
        return is_over_budget(budget, request_cost)

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def open_budget(
        self,
        team_coach_email: str,
        year: int,
        total: Decimal,
        created_by: str,
        team_coach_name: str | None = None,
    ) -> Budget:
        """Create the yearly budget of a team coach (out-of-band setup)."""
        if total < 0:
            raise ValueError(f"Budget total cannot be negative: {total}")
        model = BudgetModel(
            id=uuid4(),
            team_coach_email=team_coach_email,
            team_coach_name=team_coach_name,
            year=year,
            total=total,
            available=total,
            version=1,
            created_by=created_by,
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "budget_opened",
            extra={
                "budget_id": str(model.id),
                "team_coach": team_coach_email,
                "year": year,
                "total": str(total),
            },
        )
        return model.to_dto()

    def deduct(
        self,
        budget_id: UUID,
        amount: Decimal,
        expected_version: int | None = None,
    ) -> Budget:
        """``available -= amount``.  May leave ``available`` negative."""
        budget = self._adjust(budget_id, -amount, amount, expected_version)
        logger.info(
            "budget_deducted",
            extra={
                "budget_id": str(budget_id),
                "amount": str(amount),
                "available_after": str(budget.available),
                "over_committed": budget.available < 0,
            },
        )
        return budget

    def restore(
        self,
        budget_id: UUID,
        amount: Decimal,
        expected_version: int | None = None,
    ) -> Budget:
        """``available += amount``.  Reverses a tentative commitment."""
        budget = self._adjust(budget_id, amount, amount, expected_version)
        logger.info(
            "budget_restored",
            extra={
                "budget_id": str(budget_id),
                "amount": str(amount),
                "available_after": str(budget.available),
            },
        )
        return budget

    def apply_effects(self, effects: Iterable[BudgetEffect]) -> tuple[Budget, ...]:
        """Apply engine-planned effects in order."""
        results: list[Budget] = []
        for effect in effects:
            if effect.kind == BudgetEffectKind.DEDUCT:
                results.append(self.deduct(effect.budget_id, effect.amount))
            else:
                results.append(self.restore(effect.budget_id, effect.amount))
        return tuple(results)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _adjust(
        self,
        budget_id: UUID,
        delta: Decimal,
        amount: Decimal,
        expected_version: int | None,
    ) -> Budget:
        if amount < 0:
            raise ValueError(f"Ledger amount cannot be negative: {amount}")

        stmt = update(BudgetModel).where(BudgetModel.id == budget_id)
        if expected_version is not None:
            stmt = stmt.where(BudgetModel.version == expected_version)
        stmt = stmt.values(
            available=BudgetModel.available + delta,
            version=BudgetModel.version + 1,
        ).execution_options(synchronize_session=False)

        result = self.session.execute(stmt)
        if result.rowcount == 0:
            current = self._reload(budget_id)
            logger.warning(
                "budget_version_conflict",
                extra={
                    "budget_id": str(budget_id),
                    "expected_version": expected_version,
                    "actual_version": current.version,
                },
            )
            raise ConflictError(
                "Budget",
                str(budget_id),
                detail=f"expected version {expected_version}, found {current.version}",
            )
        return self._reload(budget_id)

    def _reload(self, budget_id: UUID) -> Budget:
        model = self.session.execute(
            select(BudgetModel)
            .where(BudgetModel.id == budget_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise BudgetNotFoundError(str(budget_id))
        return model.to_dto()
