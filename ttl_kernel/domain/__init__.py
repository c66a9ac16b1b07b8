"""
Pure domain layer.

This module contains immutable value objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O
"""

from ttl_kernel.domain.budget import (
    Budget,
    BudgetCheck,
    BudgetEffect,
    BudgetEffectKind,
    BudgetSummary,
    check_budget,
    is_over_budget,
)
from ttl_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ttl_kernel.domain.comment import Comment, normalize_comment, require_comment
from ttl_kernel.domain.notification import (
    EmailType,
    NotificationDirective,
    NotificationDispatcher,
)
from ttl_kernel.domain.request import (
    APPROVABLE_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    ItemType,
    LicenseType,
    LicensingPeriod,
    Request,
    RequestItem,
    RequestStatus,
    TeamCoachVerdict,
    compute_deadline_date,
    compute_total_cost,
)
from ttl_kernel.domain.roles import (
    Actor,
    ApproverDirectory,
    ApproverRecord,
    Role,
    RoleResolver,
    roles_from_record,
)
from ttl_kernel.domain.validation import validate_cost, validate_link
from ttl_kernel.domain.workflow import (
    REQUEST_WORKFLOW,
    Action,
    Guard,
    Transition,
    Workflow,
)

__all__ = [
    "APPROVABLE_STATUSES",
    "Action",
    "Actor",
    "ApproverDirectory",
    "ApproverRecord",
    "Budget",
    "BudgetCheck",
    "BudgetEffect",
    "BudgetEffectKind",
    "BudgetSummary",
    "Clock",
    "Comment",
    "DeterministicClock",
    "EmailType",
    "Guard",
    "ItemType",
    "LicenseType",
    "LicensingPeriod",
    "NotificationDirective",
    "NotificationDispatcher",
    "REQUEST_WORKFLOW",
    "Request",
    "RequestItem",
    "RequestStatus",
    "Role",
    "RoleResolver",
    "SystemClock",
    "TERMINAL_REQUEST_STATUSES",
    "TeamCoachVerdict",
    "Transition",
    "Workflow",
    "check_budget",
    "compute_deadline_date",
    "compute_total_cost",
    "is_over_budget",
    "normalize_comment",
    "require_comment",
    "roles_from_record",
    "validate_cost",
    "validate_link",
]
