"""
Module: ttl_kernel.models.request
Responsibility: ORM persistence for requests and their items.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values are restricted by a check constraint to the closed
      ``RequestStatus`` set; transitions themselves are decided by the
      workflow engine.
    - Optimistic concurrency: ``version`` is the mapper's version_id_col,
      so a flush against a row another transaction already changed raises
      StaleDataError instead of overwriting it.
    - Items belong to exactly one request (FK, delete-orphan cascade).

Failure modes:
    - StaleDataError on a concurrent update (mapped to ConflictError by the
      request store).
    - IntegrityError on an unknown status value.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ttl_kernel.db.base import EMAIL_LENGTH, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ttl_kernel.domain.request import Request, RequestItem


class RequestModel(TrackedBase):
    """Persistent request header."""

    __tablename__ = "ttl_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'resubmitted', "
            "'awaiting_ceo_approval', 'hr_processing', 'rejected', "
            "'booking', 'completed')",
            name="ck_ttl_requests_valid_status",
        ),
        Index("ix_ttl_requests_approver_status", "approver_id", "status"),
        Index("ix_ttl_requests_author", "author_email"),
        Index("ix_ttl_requests_submission_date", "submission_date"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    author_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ttl_approvers.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="draft")
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    project: Mapped[str | None] = mapped_column(String(255), nullable=True)
    team_coach_approval: Mapped[str | None] = mapped_column(String(20), nullable=True)
    approved_by_ceo: Mapped[bool] = mapped_column(nullable=False, default=False)
    changed_by_hr: Mapped[bool] = mapped_column(nullable=False, default=False)
    submission_date: Mapped[date | None] = mapped_column(nullable=True)
    deadline_date: Mapped[date | None] = mapped_column(nullable=True)
    shared_budget_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ttl_budgets.id"), nullable=True,
    )
    committed_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    committed_budget_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("ttl_budgets.id"), nullable=True,
    )
    version: Mapped[int] = mapped_column(nullable=False)

    items: Mapped[list["RequestItemModel"]] = relationship(
        "RequestItemModel",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestItemModel.created_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Request {self.id} {self.title!r} status={self.status} v{self.version}>"

    def to_dto(self) -> Request:
        """Convert ORM model (with items) to frozen domain DTO."""
        from ttl_kernel.domain.request import (
            Request as RequestDTO,
            RequestStatus,
            TeamCoachVerdict,
        )

        return RequestDTO(
            id=self.id,
            title=self.title,
            author_email=self.author_email,
            approver_id=self.approver_id,
            status=RequestStatus(self.status),
            total_cost=self.total_cost,
            author_name=self.author_name,
            goal=self.goal,
            project=self.project,
            team_coach_approval=(
                TeamCoachVerdict(self.team_coach_approval)
                if self.team_coach_approval else None
            ),
            approved_by_ceo=self.approved_by_ceo,
            changed_by_hr=self.changed_by_hr,
            submission_date=self.submission_date,
            deadline_date=self.deadline_date,
            shared_budget_id=self.shared_budget_id,
            committed_amount=self.committed_amount,
            committed_budget_id=self.committed_budget_id,
            version=self.version,
            items=tuple(item.to_dto() for item in self.items),
        )

    def apply_dto(self, dto: Request) -> None:
        """Copy the workflow-mutable fields of ``dto`` onto this row.

        ``id``, ``author_email`` and ``version`` are never copied; the
        version is bumped by the mapper on flush.
        """
        self.title = dto.title
        self.author_name = dto.author_name
        self.approver_id = dto.approver_id
        self.status = dto.status.value
        self.total_cost = dto.total_cost
        self.goal = dto.goal
        self.project = dto.project
        self.team_coach_approval = (
            dto.team_coach_approval.value if dto.team_coach_approval else None
        )
        self.approved_by_ceo = dto.approved_by_ceo
        self.changed_by_hr = dto.changed_by_hr
        self.submission_date = dto.submission_date
        self.deadline_date = dto.deadline_date
        self.shared_budget_id = dto.shared_budget_id
        self.committed_amount = dto.committed_amount
        self.committed_budget_id = dto.committed_budget_id

    @classmethod
    def from_dto(cls, dto: Request, created_by: str) -> RequestModel:
        """Create ORM model (header only) from domain DTO."""
        model = cls(id=dto.id, author_email=dto.author_email, created_by=created_by)
        model.apply_dto(dto)
        return model


class RequestItemModel(TrackedBase):
    """Persistent cost line of a request."""

    __tablename__ = "ttl_request_items"

    __table_args__ = (
        CheckConstraint(
            "item_type IN ('training', 'travel', 'accommodation', 'software')",
            name="ck_ttl_request_items_valid_type",
        ),
        Index("ix_ttl_request_items_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ttl_requests.id"), nullable=False,
    )
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[Decimal] = mapped_column(nullable=False)
    start_date: Mapped[date | None] = mapped_column(nullable=True)
    end_date: Mapped[date | None] = mapped_column(nullable=True)
    provider: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    license_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    licensing: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # Comma-separated names
    license_users: Mapped[str | None] = mapped_column(Text, nullable=True)

    request: Mapped["RequestModel"] = relationship(
        "RequestModel",
        back_populates="items",
    )

    def __repr__(self) -> str:
        return f"<RequestItem {self.id} {self.item_type} cost={self.cost}>"

    def to_dto(self) -> RequestItem:
        """Convert ORM model to frozen domain DTO."""
        from ttl_kernel.domain.request import (
            ItemType,
            LicenseType,
            LicensingPeriod,
            RequestItem as RequestItemDTO,
        )

        users = tuple(
            name for name in (self.license_users or "").split(",") if name
        )
        return RequestItemDTO(
            id=self.id,
            request_id=self.request_id,
            item_type=ItemType(self.item_type),
            title=self.title,
            cost=self.cost,
            start_date=self.start_date,
            end_date=self.end_date,
            provider=self.provider,
            location=self.location,
            link=self.link,
            unit_cost=self.unit_cost,
            license_type=LicenseType(self.license_type) if self.license_type else None,
            licensing=LicensingPeriod(self.licensing) if self.licensing else None,
            license_users=users,
        )

    def apply_dto(self, dto: RequestItem) -> None:
        """Copy the editable fields of ``dto`` onto this row."""
        self.item_type = dto.item_type.value
        self.title = dto.title
        self.cost = dto.cost
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.provider = dto.provider
        self.location = dto.location
        self.link = dto.link
        self.unit_cost = dto.unit_cost
        self.license_type = dto.license_type.value if dto.license_type else None
        self.licensing = dto.licensing.value if dto.licensing else None
        self.license_users = ",".join(dto.license_users) if dto.license_users else None

    @classmethod
    def from_dto(cls, dto: RequestItem, created_by: str) -> RequestItemModel:
        """Create ORM model from domain DTO."""
        model = cls(id=dto.id, request_id=dto.request_id, created_by=created_by)
        model.apply_dto(dto)
        return model
