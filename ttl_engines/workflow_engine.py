"""
ttl_engines.workflow_engine -- Request approval state machine.

Responsibility:
    Decides the outcome of one action against one request: checks that the
    (status, action) pair is in ``REQUEST_WORKFLOW``, that the actor holds
    a required role, that the transition guard holds and that a mandatory
    comment is present; then computes the next request snapshot, the
    budget effects to apply and the notification directive to send.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ttl_kernel domain types and exceptions.
    Driven by ``ttl_services.workflow_executor.WorkflowExecutor``, which
    loads the inputs, applies the planned effects and persists the result.

Invariants enforced:
    - Validate before mutate: every check runs before any new snapshot or
      effect is built; a failed action returns nothing to apply.
    - Approve routing: an approver's approval of a request whose total
      cost is strictly above the CEO threshold and that is not yet
      CEO-approved goes to ``awaiting_ceo_approval`` with no budget effect;
      every other successful approval goes to ``hr_processing``.
    - Deduct once: the amount held against the budget is recorded on the
      request (``committed_amount``).  Re-entering ``hr_processing`` only
      trues up the difference; ``deny`` restores whatever is held.
    - ``approved_by_ceo`` is never reset.
    - Purity: no clock access.  Today's date arrives in ``WorkflowContext``.

Failure modes:
    - InvalidTransitionError: no transition for (status, action), or guard
      not satisfied.
    - UnauthorizedActorError: actor holds none of the required roles.
    - MissingCommentError: blank comment on deny/reapprove.
    - EmptyRequestError: send without items.
    - ValidationError: team coach approval without a verdict.

Usage:
    engine = WorkflowEngine(ceo_approval_threshold=Decimal("5000"))
    outcome = engine.apply(
        request, Action.APPROVE, actor,
        context=WorkflowContext(approver=record, budget=budget, today=today),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from ttl_engines.tracer import traced_engine
from ttl_kernel.domain.budget import (
    Budget,
    BudgetCheck,
    BudgetEffect,
    BudgetEffectKind,
    check_budget,
)
from ttl_kernel.domain.comment import normalize_comment, require_comment
from ttl_kernel.domain.notification import EmailType, NotificationDirective
from ttl_kernel.domain.request import Request, RequestStatus, TeamCoachVerdict
from ttl_kernel.domain.roles import Actor, ApproverRecord, Role, roles_from_record
from ttl_kernel.domain.workflow import (
    CHANGED_BY_HR,
    NOT_CHANGED_BY_HR,
    REQUEST_WORKFLOW,
    Action,
    Guard,
    Transition,
    Workflow,
)
from ttl_kernel.exceptions import (
    EmptyRequestError,
    InvalidTransitionError,
    UnauthorizedActorError,
    ValidationError,
)
from ttl_kernel.logging_config import get_logger

logger = get_logger("engines.workflow")

DEFAULT_CEO_APPROVAL_THRESHOLD = Decimal("5000")


@dataclass(frozen=True)
class WorkflowContext:
    """External facts the engine needs but must not look up itself.

    ``budget`` is the budget a deduction would target (the shared budget
    when one is selected, else the team coach's budget for the current
    year), or None when no such budget exists.
    """

    approver: ApproverRecord
    budget: Budget | None
    today: date


@dataclass(frozen=True)
class WorkflowOutcome:
    """Everything the caller needs to persist and announce an action."""

    request: Request
    previous_status: RequestStatus
    action: Action
    acting_role: Role
    budget_effects: tuple[BudgetEffect, ...] = ()
    budget_check: BudgetCheck | None = None
    comment: str | None = None
    notification: NotificationDirective | None = None
    discarded: bool = False

    @property
    def status_changed(self) -> bool:
        return self.request.status != self.previous_status


class WorkflowEngine:
    """Pure evaluator of ``REQUEST_WORKFLOW``."""

    def __init__(
        self,
        ceo_approval_threshold: Decimal = DEFAULT_CEO_APPROVAL_THRESHOLD,
        workflow: Workflow = REQUEST_WORKFLOW,
    ):
        self._threshold = ceo_approval_threshold
        self._workflow = workflow

    @property
    def ceo_approval_threshold(self) -> Decimal:
        return self._threshold

    def needs_ceo_approval(self, request: Request) -> bool:
        """Strictly above the threshold and not yet signed off by the CEO."""
        return request.total_cost > self._threshold and not request.approved_by_ceo

    def available_actions(
        self,
        request: Request,
        actor: Actor,
        approver: ApproverRecord,
    ) -> tuple[Action, ...]:
        """Actions ``actor`` may issue right now (role and guard satisfied)."""
        roles = roles_from_record(actor, approver, request)
        actions: list[Action] = []
        for transition in self._workflow.transitions:
            if transition.from_state != request.status:
                continue
            if not roles.intersection(transition.roles):
                continue
            if not self._guard_holds(transition.guard, request):
                continue
            actions.append(transition.action)
        return tuple(actions)

    @traced_engine(
        "workflow", "1.0",
        fingerprint_fields=("request", "action", "actor", "comment", "context", "verdict"),
    )
    def apply(
        self,
        request: Request,
        action: Action,
        actor: Actor,
        comment: str | None = None,
        *,
        context: WorkflowContext,
        verdict: TeamCoachVerdict | None = None,
    ) -> WorkflowOutcome:
        """Evaluate ``action`` by ``actor`` against ``request``.

        Returns a ``WorkflowOutcome``; raises before building anything when
        the action is not allowed.
        """
        request_id = str(request.id)
        transition = self._workflow.find(request.status, action)
        if transition is None:
            logger.info(
                "workflow_transition_rejected",
                extra={
                    "request_id": request_id,
                    "status": request.status.value,
                    "action": action.value,
                    "reason": "no_transition",
                },
            )
            raise InvalidTransitionError(
                request_id, request.status.value, action.value,
                reason="action not available in this status",
            )

        roles = roles_from_record(actor, context.approver, request)
        held = roles.intersection(transition.roles)
        if not held:
            logger.info(
                "workflow_transition_rejected",
                extra={
                    "request_id": request_id,
                    "status": request.status.value,
                    "action": action.value,
                    "reason": "unauthorized",
                    "actor": actor.email,
                },
            )
            raise UnauthorizedActorError(
                request_id,
                request.status.value,
                action.value,
                actor.email,
                tuple(role.value for role in transition.roles),
            )

        if not self._guard_holds(transition.guard, request):
            raise InvalidTransitionError(
                request_id, request.status.value, action.value,
                reason=f"guard {transition.guard.name} not satisfied",
            )

        if transition.requires_comment:
            body = require_comment(comment, action.value, request_id)
        else:
            body = normalize_comment(comment)

        if action == Action.SEND and not request.items:
            raise EmptyRequestError(request_id)
        if action == Action.TEAM_COACH_APPROVAL and verdict is None:
            raise ValidationError("A verdict is required for team coach approval")

        outcome = self._dispatch(transition, request, held, body, context, verdict)

        logger.info(
            "workflow_transition_planned",
            extra={
                "request_id": request_id,
                "action": action.value,
                "acting_role": outcome.acting_role.value,
                "from_status": request.status.value,
                "to_status": outcome.request.status.value,
                "budget_effects": len(outcome.budget_effects),
                "discarded": outcome.discarded,
            },
        )
        return outcome

    # -----------------------------------------------------------------
    # Handlers
    # -----------------------------------------------------------------

    def _dispatch(
        self,
        transition: Transition,
        request: Request,
        held: frozenset[Role],
        comment: str | None,
        context: WorkflowContext,
        verdict: TeamCoachVerdict | None,
    ) -> WorkflowOutcome:
        action = transition.action
        if action == Action.SEND:
            return self._send(request, comment, context)
        if action == Action.APPROVE:
            return self._approve(request, held, comment, context)
        if action == Action.DENY:
            return self._deny(request, held, comment, context)
        if action == Action.REAPPROVE:
            return self._reapprove(request, comment, context)
        if action == Action.BOOK:
            return WorkflowOutcome(
                request=replace(request, status=RequestStatus.BOOKING),
                previous_status=request.status,
                action=action,
                acting_role=Role.HR,
                comment=comment,
            )
        if action == Action.MARK_COMPLETED:
            completed = replace(request, status=RequestStatus.COMPLETED)
            return WorkflowOutcome(
                request=completed,
                previous_status=request.status,
                action=action,
                acting_role=Role.HR,
                comment=comment,
                notification=_directive(EmailType.APPROVED, completed, context.approver),
            )
        if action == Action.DISCARD:
            return WorkflowOutcome(
                request=request,
                previous_status=request.status,
                action=action,
                acting_role=Role.REQUESTER,
                comment=comment,
                discarded=True,
            )
        if action == Action.TEAM_COACH_APPROVAL:
            return WorkflowOutcome(
                request=replace(request, team_coach_approval=verdict),
                previous_status=request.status,
                action=action,
                acting_role=Role.TEAM_COACH,
                comment=comment,
            )
        raise InvalidTransitionError(
            str(request.id), request.status.value, action.value,
            reason="no handler",
        )

    def _send(
        self,
        request: Request,
        comment: str | None,
        context: WorkflowContext,
    ) -> WorkflowOutcome:
        submitted = replace(
            request,
            status=RequestStatus.SUBMITTED,
            submission_date=request.submission_date or context.today,
        )
        return WorkflowOutcome(
            request=submitted,
            previous_status=request.status,
            action=Action.SEND,
            acting_role=Role.REQUESTER,
            comment=comment,
            notification=_directive(EmailType.NEW_REQUEST, submitted, context.approver),
        )

    def _approve(
        self,
        request: Request,
        held: frozenset[Role],
        comment: str | None,
        context: WorkflowContext,
    ) -> WorkflowOutcome:
        role = _decider_role(request.status, held)

        if role == Role.DELIVERY_DIRECTOR:
            signed = replace(request, approved_by_ceo=True)
            if request.status == RequestStatus.AWAITING_CEO_APPROVAL:
                return self._enter_hr_processing(
                    request, signed, role, comment, context,
                )
            # CEO sign-off alone does not pass the approver gate.
            return WorkflowOutcome(
                request=signed,
                previous_status=request.status,
                action=Action.APPROVE,
                acting_role=role,
                comment=comment,
            )

        candidate = request
        if Role.DELIVERY_DIRECTOR in held:
            candidate = replace(candidate, approved_by_ceo=True)

        if self.needs_ceo_approval(candidate):
            deferred = replace(candidate, status=RequestStatus.AWAITING_CEO_APPROVAL)
            return WorkflowOutcome(
                request=deferred,
                previous_status=request.status,
                action=Action.APPROVE,
                acting_role=role,
                comment=comment,
            )
        return self._enter_hr_processing(request, candidate, role, comment, context)

    def _enter_hr_processing(
        self,
        original: Request,
        request: Request,
        role: Role,
        comment: str | None,
        context: WorkflowContext,
    ) -> WorkflowOutcome:
        effects: list[BudgetEffect] = []
        budget_check: BudgetCheck | None = None
        budget = context.budget
        total = request.total_cost

        if request.holds_commitment:
            delta = total - request.committed_amount
            if delta > 0:
                effects.append(BudgetEffect(
                    BudgetEffectKind.DEDUCT, request.committed_budget_id, delta,
                ))
            elif delta < 0:
                effects.append(BudgetEffect(
                    BudgetEffectKind.RESTORE, request.committed_budget_id, -delta,
                ))
            if budget is not None and budget.id == request.committed_budget_id:
                budget_check = check_budget(budget, max(delta, Decimal("0")))
            request = replace(request, committed_amount=total)
        elif budget is not None:
            if total > 0:
                effects.append(BudgetEffect(BudgetEffectKind.DEDUCT, budget.id, total))
            budget_check = check_budget(budget, total)
            request = replace(
                request, committed_amount=total, committed_budget_id=budget.id,
            )
        else:
            logger.warning(
                "budget_missing_deduction_skipped",
                extra={
                    "request_id": str(request.id),
                    "team_coach": context.approver.team_coach_email,
                    "year": context.today.year,
                },
            )

        processing = replace(request, status=RequestStatus.HR_PROCESSING)
        return WorkflowOutcome(
            request=processing,
            previous_status=original.status,
            action=Action.APPROVE,
            acting_role=role,
            budget_effects=tuple(effects),
            budget_check=budget_check,
            comment=comment,
            notification=_directive(EmailType.HR, processing, context.approver),
        )

    def _deny(
        self,
        request: Request,
        held: frozenset[Role],
        comment: str,
        context: WorkflowContext,
    ) -> WorkflowOutcome:
        effects: tuple[BudgetEffect, ...] = ()
        if request.holds_commitment and request.committed_amount > 0:
            effects = (BudgetEffect(
                BudgetEffectKind.RESTORE,
                request.committed_budget_id,
                request.committed_amount,
            ),)
        rejected = replace(
            request,
            status=RequestStatus.REJECTED,
            committed_amount=None,
            committed_budget_id=None,
        )
        return WorkflowOutcome(
            request=rejected,
            previous_status=request.status,
            action=Action.DENY,
            acting_role=_decider_role(request.status, held),
            budget_effects=effects,
            comment=comment,
            notification=_directive(
                EmailType.DENY, rejected, context.approver, comment=comment,
            ),
        )

    def _reapprove(
        self,
        request: Request,
        comment: str,
        context: WorkflowContext,
    ) -> WorkflowOutcome:
        resubmitted = replace(
            request, status=RequestStatus.RESUBMITTED, changed_by_hr=False,
        )
        return WorkflowOutcome(
            request=resubmitted,
            previous_status=request.status,
            action=Action.REAPPROVE,
            acting_role=Role.HR,
            comment=comment,
            notification=_directive(
                EmailType.REAPPROVE, resubmitted, context.approver, comment=comment,
            ),
        )

    @staticmethod
    def _guard_holds(guard: Guard | None, request: Request) -> bool:
        if guard is None:
            return True
        if guard == CHANGED_BY_HR:
            return request.changed_by_hr
        if guard == NOT_CHANGED_BY_HR:
            return not request.changed_by_hr
        raise ValueError(f"Unknown guard: {guard.name}")


def _decider_role(status: RequestStatus, held: frozenset[Role]) -> Role:
    """Most specific deciding role for approve/deny.

    At ``awaiting_ceo_approval`` the CEO is the one being waited for;
    elsewhere the approver gate comes first.
    """
    if status == RequestStatus.AWAITING_CEO_APPROVAL and Role.DELIVERY_DIRECTOR in held:
        return Role.DELIVERY_DIRECTOR
    if Role.APPROVER in held:
        return Role.APPROVER
    return Role.DELIVERY_DIRECTOR


def _directive(
    email_type: EmailType,
    request: Request,
    approver: ApproverRecord,
    comment: str | None = None,
) -> NotificationDirective:
    return NotificationDirective(
        email_type=email_type,
        request_id=request.id,
        title=request.title,
        total_cost=request.total_cost,
        author_email=request.author_email,
        author_name=request.author_name,
        approver_email=approver.practice_lead_email,
        approver_title=approver.practice_lead_name,
        team_coach_email=approver.team_coach_email,
        team_coach_title=approver.team_coach_name,
        comment=comment,
    )
