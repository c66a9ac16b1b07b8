"""
Module: ttl_kernel.selectors.budget_selector
Responsibility: Read-only budget queries: one coach's budget for a year,
    the budgets a request could borrow from, and team totals for the
    budget dashboard.
Architecture position: Kernel > Selectors.
"""

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select

from ttl_kernel.domain.budget import Budget, BudgetSummary
from ttl_kernel.models.budget import BudgetModel
from ttl_kernel.selectors.base import BaseSelector


class BudgetSelector(BaseSelector):
    """Budget read model."""

    def get_for_coach(self, team_coach_email: str, year: int) -> Budget | None:
        model = self.session.execute(
            select(BudgetModel).where(
                BudgetModel.team_coach_email == team_coach_email,
                BudgetModel.year == year,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_year(
        self,
        year: int,
        min_available: Decimal | None = None,
        exclude_coach: str | None = None,
    ) -> list[Budget]:
        """Budgets of ``year``, richest first.

        ``min_available`` keeps only budgets that could cover that amount;
        ``exclude_coach`` drops the requester's own coach when looking for
        a budget to share.
        """
        stmt = select(BudgetModel).where(BudgetModel.year == year)
        if min_available is not None:
            stmt = stmt.where(BudgetModel.available >= min_available)
        if exclude_coach is not None:
            stmt = stmt.where(BudgetModel.team_coach_email != exclude_coach)
        stmt = stmt.order_by(BudgetModel.available.desc(), BudgetModel.team_coach_email)
        return [model.to_dto() for model in self.session.execute(stmt).scalars()]

    def team_summary(self, team_coach_emails: Iterable[str], year: int) -> BudgetSummary:
        """Total/available/used over the budgets of the given coaches.

        Coaches without a budget for ``year`` contribute nothing.
        """
        coaches = list(team_coach_emails)
        budgets: list[Budget] = []
        if coaches:
            budgets = [
                model.to_dto()
                for model in self.session.execute(
                    select(BudgetModel).where(
                        BudgetModel.year == year,
                        BudgetModel.team_coach_email.in_(coaches),
                    )
                ).scalars()
            ]
        return BudgetSummary(
            year=year,
            total=sum((b.total for b in budgets), Decimal("0")),
            available=sum((b.available for b in budgets), Decimal("0")),
            budget_count=len(budgets),
        )
