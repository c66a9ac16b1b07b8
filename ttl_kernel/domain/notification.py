"""
Notification directive (``ttl_kernel.domain.notification``).

Responsibility
--------------
The structured payload the workflow engine emits after a transition and
the dispatcher protocol that consumes it.  Templating and delivery are
the dispatcher's business; the kernel only assembles the directive.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID


class EmailType(str, Enum):
    """E-mail templates known to the notification flow."""

    NEW_REQUEST = "new request"
    HR = "HR"
    DENY = "deny"
    REAPPROVE = "reapprove"
    APPROVED = "approved"


@dataclass(frozen=True)
class NotificationDirective:
    """What to tell whom after a transition."""

    email_type: EmailType
    request_id: UUID
    title: str
    total_cost: Decimal
    author_email: str
    author_name: str | None
    approver_email: str
    approver_title: str | None
    team_coach_email: str
    team_coach_title: str | None
    comment: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with the field names the e-mail flow expects."""
        payload: dict[str, Any] = {
            "emailType": self.email_type.value,
            "requestId": str(self.request_id),
            "title": self.title,
            "totalCost": str(self.total_cost),
            "authorEmail": self.author_email,
            "authorName": self.author_name,
            "approverEmail": self.approver_email,
            "approverTitle": self.approver_title,
            "teamCoachEmail": self.team_coach_email,
            "teamCoachTitle": self.team_coach_title,
        }
        if self.comment is not None:
            payload["comment"] = self.comment
        return payload


class NotificationDispatcher(Protocol):
    """Pluggable outbound notifier (e-mail flow, chat hook, ...)."""

    def dispatch(self, directive: NotificationDirective) -> None:
        """Deliver the directive.  May raise; the caller logs and moves on."""
        ...
