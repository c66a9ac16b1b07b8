"""
Module: ttl_kernel.models.budget
Responsibility: ORM persistence for yearly team-coach budgets.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One budget per (team coach, year): UNIQUE constraint.
    - ``available`` has no floor; a negative value signals over-commitment.
    - ``version`` is bumped by every ledger UPDATE so callers holding an
      older snapshot can detect that they lost a race.

Failure modes:
    - IntegrityError on a duplicate (team coach, year) budget.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ttl_kernel.db.base import EMAIL_LENGTH, TrackedBase

if TYPE_CHECKING:
    from ttl_kernel.domain.budget import Budget


class BudgetModel(TrackedBase):
    """Yearly budget of one team coach.

    ``available`` is only ever changed by ``BudgetLedger`` through atomic
    UPDATE statements, never by assigning the attribute and flushing.
    """

    __tablename__ = "ttl_budgets"

    __table_args__ = (
        UniqueConstraint("team_coach_email", "year", name="uq_ttl_budgets_coach_year"),
        Index("ix_ttl_budgets_year", "year"),
    )

    team_coach_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    team_coach_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[int] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    available: Mapped[Decimal] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<Budget {self.team_coach_email} {self.year} "
            f"available={self.available}/{self.total}>"
        )

    def to_dto(self) -> Budget:
        """Convert ORM model to frozen domain DTO."""
        from ttl_kernel.domain.budget import Budget as BudgetDTO

        return BudgetDTO(
            id=self.id,
            team_coach_email=self.team_coach_email,
            year=self.year,
            total=self.total,
            available=self.available,
            team_coach_name=self.team_coach_name,
            version=self.version,
        )
