"""
ttl_services.workflow_executor -- One workflow action as one transaction.

Responsibility:
    Runs a single action against a stored request as an atomic unit:
    load the request, resolve the approval chain and target budget, let
    the pure ``WorkflowEngine`` decide, apply the planned ledger effects,
    record the comment, write the new request state and commit.  Only
    after the commit is the notification handed to the dispatcher.

Architecture position:
    Services layer.  May import from ttl_engines/ (pure engines),
    ttl_kernel/ (domain, services, models) and ttl_config/.

Invariants enforced:
    - All-or-nothing: any failure before commit rolls back the ledger
      effects, the comment and the status change together.
    - Idempotence: a replay carrying a stale ``expected_version``, or a
      save racing another transaction, raises ``ConflictError`` and leaves
      nothing behind; a replay against fresh state fails the transition
      check.  The budget is never deducted twice.
    - Notification is best-effort and happens after commit.

Failure modes:
    - RequestNotFoundError / ApproverNotFoundError.
    - InvalidTransitionError, UnauthorizedActorError, ValidationError
      (from the engine, before anything is written).
    - ConflictError on a stale request version.
"""

from __future__ import annotations

import time
from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ttl_config import WorkflowConfig, get_active_config
from ttl_engines.workflow_engine import WorkflowContext, WorkflowEngine, WorkflowOutcome
from ttl_kernel.domain.budget import Budget, BudgetCheck, check_budget
from ttl_kernel.domain.clock import Clock, SystemClock
from ttl_kernel.domain.notification import NotificationDispatcher
from ttl_kernel.domain.request import (
    TERMINAL_REQUEST_STATUSES,
    Request,
    RequestItem,
    TeamCoachVerdict,
)
from ttl_kernel.domain.roles import (
    Actor,
    ApproverDirectory,
    ApproverRecord,
    Role,
    RoleResolver,
)
from ttl_kernel.domain.workflow import Action
from ttl_kernel.exceptions import (
    BudgetNotFoundError,
    ConflictError,
    InvalidTransitionError,
    UnauthorizedActorError,
)
from ttl_kernel.logging_config import LogContext, get_logger
from ttl_kernel.models.approver import ApproverModel
from ttl_kernel.services.budget_ledger import BudgetLedger
from ttl_kernel.services.comment_log import CommentLog
from ttl_kernel.services.notification_service import NotificationService
from ttl_kernel.services.request_store import RequestStore

logger = get_logger("services.workflow_executor")

_BUDGET_SELECTORS = (Role.APPROVER, Role.DELIVERY_DIRECTOR)


class WorkflowExecutor:
    """
    Thin coordinator around ``WorkflowEngine``.

    Transaction boundary: this service commits on success and rolls back
    on any failure, then re-raises.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: WorkflowConfig | None = None,
        dispatcher: NotificationDispatcher | None = None,
        role_resolver: RoleResolver | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._role_resolver = role_resolver

        self._engine = WorkflowEngine(
            ceo_approval_threshold=self._config.ceo_approval_threshold,
        )
        self._store = RequestStore(session)
        self._ledger = BudgetLedger(session)
        self._comments = CommentLog(session, self._clock)
        self._notifier = NotificationService(
            dispatcher, enabled=self._config.notifications_enabled,
        )

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    # =========================================================================
    # Actions
    # =========================================================================

    def apply(
        self,
        request_id: UUID,
        action: Action | str,
        actor: Actor,
        comment: str | None = None,
        *,
        verdict: TeamCoachVerdict | None = None,
        expected_version: int | None = None,
    ) -> WorkflowOutcome:
        """Apply ``action`` by ``actor`` to the stored request.

        Returns the engine outcome with ``request`` replaced by the stored
        snapshot (new version).  For a discard, ``request`` is the last
        state before deletion.
        """
        action = Action(action)
        t0 = time.monotonic()
        with LogContext.bind(
            correlation_id=str(uuid4()),
            request_id=str(request_id),
            actor=actor.email,
            action=action.value,
        ):
            logger.info("workflow_action_started")
            try:
                request = self._store.load(request_id)
                if expected_version is not None and request.version != expected_version:
                    raise ConflictError(
                        "Request",
                        str(request_id),
                        detail=(
                            f"expected version {expected_version}, "
                            f"found {request.version}"
                        ),
                    )

                approver = self._resolver().approver_for(request)
                context = WorkflowContext(
                    approver=approver,
                    budget=self._target_budget(request, approver),
                    today=self._clock.today(),
                )
                outcome = self._engine.apply(
                    request, action, actor, comment,
                    context=context, verdict=verdict,
                )

                self._ledger.apply_effects(outcome.budget_effects)
                if outcome.comment is not None:
                    self._comments.add(
                        request.id,
                        actor.email,
                        outcome.comment,
                        author_name=actor.name,
                        title=action.value,
                    )

                if outcome.discarded:
                    self._store.delete_request_and_items(request.id)
                    stored = outcome.request
                else:
                    stored = self._store.save(outcome.request, updated_by=actor.email)

                self._session.commit()
            except Exception:
                self._session.rollback()
                logger.warning(
                    "workflow_action_rolled_back",
                    exc_info=True,
                    extra={"duration_ms": _elapsed_ms(t0)},
                )
                raise

            logger.info(
                "workflow_transition_applied",
                extra={
                    "from_status": outcome.previous_status.value,
                    "to_status": stored.status.value,
                    "acting_role": outcome.acting_role.value,
                    "discarded": outcome.discarded,
                    "version": stored.version,
                    "over_budget": (
                        outcome.budget_check.over_budget
                        if outcome.budget_check else None
                    ),
                    "duration_ms": _elapsed_ms(t0),
                },
            )
            self._notifier.send(outcome.notification)

        return replace(outcome, request=stored)

    def apply_with_retry(
        self,
        request_id: UUID,
        action: Action | str,
        actor: Actor,
        comment: str | None = None,
        *,
        verdict: TeamCoachVerdict | None = None,
    ) -> WorkflowOutcome:
        """``apply`` that reloads and retries after a ``ConflictError``.

        Each attempt starts from freshly loaded state, so a retry after a
        concurrent transition is re-checked against the new status.
        """
        attempts = self._config.budget_conflict_retries
        for attempt in range(1, attempts + 1):
            try:
                return self.apply(request_id, action, actor, comment, verdict=verdict)
            except ConflictError:
                if attempt == attempts:
                    raise
                logger.warning(
                    "workflow_conflict_retry",
                    extra={
                        "request_id": str(request_id),
                        "attempt": attempt,
                        "max_attempts": attempts,
                    },
                )
                self._session.expire_all()
        raise AssertionError("unreachable")

    # =========================================================================
    # Requests and budgets
    # =========================================================================

    def create_request(
        self,
        author: Actor,
        approver_id: UUID,
        title: str,
        *,
        goal: str | None = None,
        project: str | None = None,
        items: tuple[RequestItem, ...] = (),
    ) -> Request:
        """Create a draft request on the given approval line."""
        try:
            self._resolver().directory.get(approver_id)
            request_id = uuid4()
            draft = Request(
                id=request_id,
                title=title,
                author_email=author.email,
                author_name=author.name,
                approver_id=approver_id,
                goal=goal,
                project=project,
            ).with_items(tuple(replace(item, request_id=request_id) for item in items))
            stored = self._store.create(draft, created_by=author.email)
            self._session.commit()
            return stored
        except Exception:
            self._session.rollback()
            raise

    def check_budget(self, request_id: UUID) -> BudgetCheck | None:
        """Over-budget check for the budget an approval would charge.

        None when there is no budget to charge.
        """
        request = self._store.load(request_id)
        approver = self._resolver().approver_for(request)
        budget = self._target_budget(request, approver)
        if budget is None:
            return None
        result = check_budget(budget, request.total_cost)
        if result.over_budget:
            logger.info(
                "budget_check_over_budget",
                extra={
                    "request_id": str(request_id),
                    "budget_id": str(budget.id),
                    "available": str(budget.available),
                    "request_cost": str(request.total_cost),
                },
            )
        return result

    def select_shared_budget(
        self,
        request_id: UUID,
        budget_id: UUID | None,
        actor: Actor,
    ) -> Request:
        """Charge the request to another team's budget (None clears it).

        Raises:
            UnauthorizedActorError: actor is neither approver nor CEO.
            InvalidTransitionError: a commitment is already held, or the
                request is completed.
            BudgetNotFoundError: unknown budget.
        """
        try:
            request = self._store.load(request_id)
            resolver = self._resolver()
            roles = resolver.roles_for(actor, request)
            if not roles.intersection(_BUDGET_SELECTORS):
                raise UnauthorizedActorError(
                    str(request_id),
                    request.status.value,
                    "select budget",
                    actor.email,
                    tuple(role.value for role in _BUDGET_SELECTORS),
                )
            if request.holds_commitment or request.status in TERMINAL_REQUEST_STATUSES:
                raise InvalidTransitionError(
                    str(request_id),
                    request.status.value,
                    "select budget",
                    reason="budget already charged",
                )
            if budget_id is not None:
                self._ledger.get(budget_id)

            stored = self._store.save(
                replace(request, shared_budget_id=budget_id), updated_by=actor.email,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "shared_budget_selected",
            extra={
                "request_id": str(request_id),
                "budget_id": str(budget_id) if budget_id else None,
                "actor": actor.email,
            },
        )
        return stored

    def available_actions(self, request_id: UUID, actor: Actor) -> tuple[Action, ...]:
        request = self._store.load(request_id)
        approver = self._resolver().approver_for(request)
        return self._engine.available_actions(request, actor, approver)

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolver(self) -> RoleResolver:
        if self._role_resolver is None:
            records = [
                model.to_dto()
                for model in self._session.execute(select(ApproverModel)).scalars()
            ]
            return RoleResolver(ApproverDirectory(records))
        return self._role_resolver

    def _target_budget(self, request: Request, approver: ApproverRecord) -> Budget | None:
        """Budget a deduction would charge, or None.

        A held commitment stays on its budget; otherwise a shared budget
        wins over the team coach's own budget for the current year.
        """
        for budget_id in (request.committed_budget_id, request.shared_budget_id):
            if budget_id is None:
                continue
            try:
                return self._ledger.get(budget_id)
            except BudgetNotFoundError:
                logger.warning(
                    "budget_reference_missing",
                    extra={"request_id": str(request.id), "budget_id": str(budget_id)},
                )
                return None
        return self._ledger.get_available(
            approver.team_coach_email, self._clock.current_year(),
        )


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 3)
