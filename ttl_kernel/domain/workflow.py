"""
Request workflow definition (``ttl_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the request state machine and the one workflow
built from them.  ``REQUEST_WORKFLOW`` is the single source of truth for
which (status, action, role) triples are legal; the engine reads it, it
never re-encodes it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``Completed`` has no outgoing status-changing edge.
* Actions with ``requires_comment=True`` fail validation on a blank
  comment before anything is mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ttl_kernel.domain.request import RequestStatus
from ttl_kernel.domain.roles import Role


class Action(str, Enum):
    """Actions an actor can issue against a request."""

    SEND = "send"
    APPROVE = "approve"
    DENY = "deny"
    REAPPROVE = "reapprove"
    BOOK = "book"
    MARK_COMPLETED = "mark_completed"
    DISCARD = "discard"
    TEAM_COACH_APPROVAL = "team_coach_approval"


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow engine does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A legal move in the request workflow.

    ``to_state=None`` means the target is not fixed by the table: it is
    chosen by the approve routing rule, or the request is deleted (discard).
    ``roles`` lists the roles of which the actor must hold at least one.
    """
    from_state: RequestStatus
    action: Action
    to_state: RequestStatus | None
    roles: tuple[Role, ...]
    guard: Guard | None = None
    requires_comment: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for the request lifecycle."""
    name: str
    description: str
    initial_state: RequestStatus
    states: tuple[RequestStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[RequestStatus, ...] = ()

    def find(self, from_state: RequestStatus, action: Action) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.action == action:
                return transition
        return None

    def actions_from(self, from_state: RequestStatus) -> tuple[Action, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)


CHANGED_BY_HR = Guard("changed_by_hr", "HR changed a cost after submission")
NOT_CHANGED_BY_HR = Guard("not_changed_by_hr", "No pending HR cost change")

_REQUESTER = (Role.REQUESTER,)
_DECIDERS = (Role.APPROVER, Role.DELIVERY_DIRECTOR)
_HR = (Role.HR,)

_S = RequestStatus


def _decisions(from_state: RequestStatus) -> tuple[Transition, ...]:
    return (
        Transition(from_state, Action.APPROVE, None, _DECIDERS),
        Transition(from_state, Action.DENY, _S.REJECTED, _DECIDERS, requires_comment=True),
    )


def _advisory(from_state: RequestStatus) -> Transition:
    return Transition(from_state, Action.TEAM_COACH_APPROVAL, from_state, (Role.TEAM_COACH,))


REQUEST_WORKFLOW = Workflow(
    name="ttl_request",
    description="Training, travel and licence request approval",
    initial_state=_S.DRAFT,
    states=tuple(RequestStatus),
    transitions=(
        Transition(_S.DRAFT, Action.SEND, _S.SUBMITTED, _REQUESTER),
        Transition(_S.REJECTED, Action.SEND, _S.SUBMITTED, _REQUESTER),
        Transition(_S.DRAFT, Action.DISCARD, None, _REQUESTER),
        Transition(_S.REJECTED, Action.DISCARD, None, _REQUESTER),
        *_decisions(_S.SUBMITTED),
        *_decisions(_S.RESUBMITTED),
        *_decisions(_S.AWAITING_CEO_APPROVAL),
        Transition(
            _S.HR_PROCESSING, Action.REAPPROVE, _S.RESUBMITTED, _HR,
            guard=CHANGED_BY_HR, requires_comment=True,
        ),
        Transition(
            _S.HR_PROCESSING, Action.BOOK, _S.BOOKING, _HR, guard=NOT_CHANGED_BY_HR,
        ),
        Transition(
            _S.HR_PROCESSING, Action.MARK_COMPLETED, _S.COMPLETED, _HR,
            guard=NOT_CHANGED_BY_HR,
        ),
        Transition(_S.BOOKING, Action.MARK_COMPLETED, _S.COMPLETED, _HR),
        *(_advisory(state) for state in RequestStatus),
    ),
    terminal_states=(_S.COMPLETED,),
)
