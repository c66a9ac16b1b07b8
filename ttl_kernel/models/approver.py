"""
Module: ttl_kernel.models.approver
Responsibility: ORM persistence for approval-chain records (team member ->
    team coach -> practice lead -> CEO).

Architecture position: Kernel > Models.  May import from db/base.py only.

Approver records are maintained out-of-band; the workflow only reads them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ttl_kernel.db.base import EMAIL_LENGTH, Base

if TYPE_CHECKING:
    from ttl_kernel.domain.roles import ApproverRecord


class ApproverModel(Base):
    """One organisational approval line."""

    __tablename__ = "ttl_approvers"

    __table_args__ = (
        Index("ix_ttl_approvers_team_member", "team_member_email"),
        Index("ix_ttl_approvers_practice_lead", "practice_lead_email"),
        Index("ix_ttl_approvers_ceo", "ceo_email"),
    )

    team_member_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    team_coach_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    practice_lead_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    ceo_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    team_member_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    team_coach_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    practice_lead_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ceo_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    backup_email: Mapped[str | None] = mapped_column(String(EMAIL_LENGTH), nullable=True)

    def __repr__(self) -> str:
        return f"<Approver {self.team_member_email} -> {self.practice_lead_email}>"

    def to_dto(self) -> ApproverRecord:
        """Convert ORM model to frozen domain DTO."""
        from ttl_kernel.domain.roles import ApproverRecord as ApproverRecordDTO

        return ApproverRecordDTO(
            id=self.id,
            team_member_email=self.team_member_email,
            team_coach_email=self.team_coach_email,
            practice_lead_email=self.practice_lead_email,
            ceo_email=self.ceo_email,
            team_member_name=self.team_member_name,
            team_coach_name=self.team_coach_name,
            practice_lead_name=self.practice_lead_name,
            ceo_name=self.ceo_name,
            backup_email=self.backup_email,
        )

    @classmethod
    def from_dto(cls, dto: ApproverRecord) -> ApproverModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            team_member_email=dto.team_member_email,
            team_coach_email=dto.team_coach_email,
            practice_lead_email=dto.practice_lead_email,
            ceo_email=dto.ceo_email,
            team_member_name=dto.team_member_name,
            team_coach_name=dto.team_coach_name,
            practice_lead_name=dto.practice_lead_name,
            ceo_name=dto.ceo_name,
            backup_email=dto.backup_email,
        )
