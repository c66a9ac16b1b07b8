"""
Request domain types (``ttl_kernel.domain.request``).

Responsibility
--------------
Pure value objects for expense-type requests (training, travel,
accommodation, software licences) and their items.  Defines the closed
status set of the approval state machine and the helpers that keep the
derived request fields (``total_cost``, ``deadline_date``) consistent
with the live items.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``RequestStatus`` is closed; the status of a request changes only
  through the workflow engine.
* ``total_cost`` is the sum of the live items' costs and ``deadline_date``
  is the earliest item start date (``with_items`` recomputes both).
* ``approved_by_ceo`` is sticky once true.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Status Lifecycle
# =========================================================================


class RequestStatus(str, Enum):
    """Request lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    AWAITING_CEO_APPROVAL = "awaiting_ceo_approval"
    HR_PROCESSING = "hr_processing"
    REJECTED = "rejected"
    BOOKING = "booking"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        """Label shown to users."""
        return _STATUS_LABELS[self]


_STATUS_LABELS: dict[RequestStatus, str] = {
    RequestStatus.DRAFT: "Saved",
    RequestStatus.SUBMITTED: "Sent for approval",
    RequestStatus.RESUBMITTED: "Needs reapproval",
    RequestStatus.AWAITING_CEO_APPROVAL: "Awaiting CEO approval",
    RequestStatus.HR_PROCESSING: "In process by HR",
    RequestStatus.REJECTED: "Declined",
    RequestStatus.BOOKING: "Booking",
    RequestStatus.COMPLETED: "Completed",
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.COMPLETED,
})

# Statuses in which an approver or the CEO can still decide.
APPROVABLE_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.SUBMITTED,
    RequestStatus.RESUBMITTED,
    RequestStatus.AWAITING_CEO_APPROVAL,
})


class TeamCoachVerdict(str, Enum):
    """Advisory opinion of the team coach.  Never blocks the workflow."""

    APPROVE = "approve"
    DISAPPROVE = "disapprove"


# =========================================================================
# Items
# =========================================================================


class ItemType(str, Enum):
    TRAINING = "training"
    TRAVEL = "travel"
    ACCOMMODATION = "accommodation"
    SOFTWARE = "software"


class LicenseType(str, Enum):
    GROUP = "Group"
    INDIVIDUAL = "Individual"


class LicensingPeriod(str, Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    ONE_TIME = "One-time"


@dataclass(frozen=True)
class RequestItem:
    """A single cost line of a request.

    For software items ``cost`` is the computed yearly licence cost;
    ``unit_cost`` keeps the price as entered.
    """

    id: UUID
    request_id: UUID
    item_type: ItemType
    title: str
    cost: Decimal
    start_date: date | None = None
    end_date: date | None = None
    provider: str | None = None
    location: str | None = None
    link: str | None = None
    unit_cost: Decimal | None = None
    license_type: LicenseType | None = None
    licensing: LicensingPeriod | None = None
    license_users: tuple[str, ...] = ()


# =========================================================================
# Request
# =========================================================================


@dataclass(frozen=True)
class Request:
    """Immutable snapshot of a request as seen by the workflow engine.

    ``committed_amount``/``committed_budget_id`` record the budget amount
    currently held for this request (deducted on the way into HR
    processing, released on denial).  ``version`` is the optimistic
    concurrency token of the stored row.
    """

    id: UUID
    title: str
    author_email: str
    approver_id: UUID
    status: RequestStatus = RequestStatus.DRAFT
    total_cost: Decimal = Decimal("0")
    author_name: str | None = None
    goal: str | None = None
    project: str | None = None
    team_coach_approval: TeamCoachVerdict | None = None
    approved_by_ceo: bool = False
    changed_by_hr: bool = False
    submission_date: date | None = None
    deadline_date: date | None = None
    shared_budget_id: UUID | None = None
    committed_amount: Decimal | None = None
    committed_budget_id: UUID | None = None
    version: int = 1
    items: tuple[RequestItem, ...] = field(default_factory=tuple)

    @property
    def holds_commitment(self) -> bool:
        return self.committed_amount is not None

    def with_items(self, items: tuple[RequestItem, ...]) -> Request:
        """Return a copy with ``items`` and the derived fields recomputed."""
        return replace(
            self,
            items=items,
            total_cost=compute_total_cost(items),
            deadline_date=compute_deadline_date(items),
        )


def compute_total_cost(items: tuple[RequestItem, ...] | list[RequestItem]) -> Decimal:
    """Sum of the items' costs."""
    return sum((item.cost for item in items), Decimal("0"))


def compute_deadline_date(
    items: tuple[RequestItem, ...] | list[RequestItem],
) -> date | None:
    """Earliest start date across items, or None when no item has one."""
    starts = [item.start_date for item in items if item.start_date is not None]
    return min(starts) if starts else None
