"""
Role resolution (``ttl_kernel.domain.roles``).

Responsibility
--------------
Decides which workflow roles an actor holds for a given request.  Each
request references exactly one ``ApproverRecord`` (one organisational
line: team member -> team coach -> practice lead -> CEO); roles are found
by exact e-mail equality against that record plus the author of the
request, with HR membership supplied by the caller.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  The approver records are
loaded by the caller and handed in as an ``ApproverDirectory``.

Invariants enforced
-------------------
* Matching is exact string equality on e-mail addresses.
* An actor may hold several roles at once; ``roles_for`` returns the union.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from ttl_kernel.domain.request import Request
from ttl_kernel.exceptions import ApproverNotFoundError


class Role(str, Enum):
    REQUESTER = "requester"
    TEAM_COACH = "team_coach"
    APPROVER = "approver"
    DELIVERY_DIRECTOR = "delivery_director"
    HR = "hr"


@dataclass(frozen=True)
class ApproverRecord:
    """Approval chain for one organisational line.

    The practice lead is the "Approver" of the workflow; the CEO (delivery
    director) signs off requests above the CEO threshold.  The team coach's
    yearly budget is the one debited.  ``backup_email`` names a deputy who
    holds the Approver role alongside the practice lead.
    """

    id: UUID
    team_member_email: str
    team_coach_email: str
    practice_lead_email: str
    ceo_email: str
    team_member_name: str | None = None
    team_coach_name: str | None = None
    practice_lead_name: str | None = None
    ceo_name: str | None = None
    backup_email: str | None = None


@dataclass(frozen=True)
class Actor:
    """Who is acting.  ``is_hr`` comes from an external group check."""

    email: str
    name: str | None = None
    is_hr: bool = False


class ApproverDirectory:
    """Approver records indexed by id and by every e-mail they mention."""

    def __init__(self, records: Iterable[ApproverRecord]):
        self._by_id: dict[UUID, ApproverRecord] = {}
        self._by_email: dict[str, list[ApproverRecord]] = defaultdict(list)
        for record in records:
            self._by_id[record.id] = record
            for email in {
                record.team_member_email,
                record.team_coach_email,
                record.practice_lead_email,
                record.ceo_email,
                record.backup_email,
            }:
                if email:
                    self._by_email[email].append(record)

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, approver_id: UUID) -> ApproverRecord:
        record = self._by_id.get(approver_id)
        if record is None:
            raise ApproverNotFoundError(str(approver_id))
        return record

    def records_for_email(self, email: str) -> tuple[ApproverRecord, ...]:
        return tuple(self._by_email.get(email, ()))

    def coaches_led_by(self, practice_lead_email: str) -> tuple[str, ...]:
        """Team coaches whose lines the given practice lead approves."""
        return tuple(sorted({
            r.team_coach_email
            for r in self.records_for_email(practice_lead_email)
            if r.practice_lead_email == practice_lead_email
        }))


class RoleResolver:
    """Resolves the role set of an actor for a request."""

    def __init__(self, directory: ApproverDirectory):
        self._directory = directory

    @property
    def directory(self) -> ApproverDirectory:
        return self._directory

    def approver_for(self, request: Request) -> ApproverRecord:
        return self._directory.get(request.approver_id)

    def roles_for(self, actor: Actor, request: Request) -> frozenset[Role]:
        """Return every role ``actor`` holds for ``request``.

        Raises:
            ApproverNotFoundError: the request's approver record is unknown.
        """
        record = self.approver_for(request)
        return roles_from_record(actor, record, request)


def roles_from_record(
    actor: Actor,
    record: ApproverRecord,
    request: Request,
) -> frozenset[Role]:
    email = actor.email
    roles: set[Role] = set()
    if email == request.author_email:
        roles.add(Role.REQUESTER)
    if email == record.team_coach_email:
        roles.add(Role.TEAM_COACH)
    if email == record.practice_lead_email or (
        record.backup_email is not None and email == record.backup_email
    ):
        roles.add(Role.APPROVER)
    if email == record.ceo_email:
        roles.add(Role.DELIVERY_DIRECTOR)
    if actor.is_hr:
        roles.add(Role.HR)
    return frozenset(roles)
