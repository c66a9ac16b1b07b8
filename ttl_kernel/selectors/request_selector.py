"""
Module: ttl_kernel.selectors.request_selector
Responsibility: Read-only request queries behind the dashboards: a
    requester's own requests, an approver's queue, the requests charged to
    a coach's budget in a year and the requests waiting for the CEO.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import or_, select

from ttl_kernel.domain.request import APPROVABLE_STATUSES, Request, RequestStatus
from ttl_kernel.models.approver import ApproverModel
from ttl_kernel.models.request import RequestModel
from ttl_kernel.selectors.base import BaseSelector

_APPROVER_QUEUE = (RequestStatus.SUBMITTED.value, RequestStatus.RESUBMITTED.value)


class RequestSelector(BaseSelector):
    """Request read model."""

    def by_author(self, author_email: str) -> list[Request]:
        stmt = (
            select(RequestModel)
            .where(RequestModel.author_email == author_email)
            .order_by(RequestModel.created_at.desc())
        )
        return self._fetch(stmt)

    def pending_for_approver(self, practice_lead_email: str) -> list[Request]:
        """Requests waiting for this practice lead's (or backup's) decision."""
        stmt = (
            select(RequestModel)
            .join(ApproverModel, RequestModel.approver_id == ApproverModel.id)
            .where(
                or_(
                    ApproverModel.practice_lead_email == practice_lead_email,
                    ApproverModel.backup_email == practice_lead_email,
                ),
                RequestModel.status.in_(_APPROVER_QUEUE),
            )
            .order_by(RequestModel.submission_date, RequestModel.title)
        )
        return self._fetch(stmt)

    def for_budget(self, team_coach_email: str, year: int) -> list[Request]:
        """Requests of the coach's line submitted during ``year``."""
        stmt = (
            select(RequestModel)
            .join(ApproverModel, RequestModel.approver_id == ApproverModel.id)
            .where(
                ApproverModel.team_coach_email == team_coach_email,
                RequestModel.submission_date >= date(year, 1, 1),
                RequestModel.submission_date <= date(year, 12, 31),
            )
            .order_by(RequestModel.submission_date, RequestModel.title)
        )
        return self._fetch(stmt)

    def awaiting_ceo(
        self,
        ceo_email: str,
        threshold: Decimal = Decimal("5000"),
    ) -> list[Request]:
        """Requests above ``threshold`` the CEO has not signed off yet."""
        stmt = (
            select(RequestModel)
            .join(ApproverModel, RequestModel.approver_id == ApproverModel.id)
            .where(
                ApproverModel.ceo_email == ceo_email,
                RequestModel.total_cost > threshold,
                RequestModel.approved_by_ceo.is_(False),
                RequestModel.status.in_([s.value for s in APPROVABLE_STATUSES]),
            )
            .order_by(RequestModel.submission_date, RequestModel.title)
        )
        return self._fetch(stmt)

    def _fetch(self, stmt) -> list[Request]:
        return [model.to_dto() for model in self.session.execute(stmt).scalars()]
