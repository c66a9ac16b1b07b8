"""
End-to-end request lifecycles through WorkflowExecutor.

Each test drives a stored request through several actions and checks the
status, the budget ledger, the comment trail and the notifications after
every step.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ttl_kernel.domain.request import RequestStatus, TeamCoachVerdict
from ttl_kernel.domain.roles import Actor, Role
from ttl_kernel.domain.workflow import Action
from ttl_kernel.exceptions import (
    ApproverNotFoundError,
    InvalidTransitionError,
    MissingCommentError,
    RequestNotFoundError,
    UnauthorizedActorError,
)
from ttl_kernel.models.approver import ApproverModel


def available(ledger, budget):
    return ledger.get(budget.id).available


class TestScenarioA:
    """Small request: send, approve, complete."""

    def test_small_request_flow(
        self, create_request, executor, ledger, coach_budget, actors, recording_dispatcher,
    ):
        draft = create_request("1200")
        assert draft.status == RequestStatus.DRAFT

        sent = executor.apply(draft.id, Action.SEND, actors.member)
        assert sent.request.status == RequestStatus.SUBMITTED
        assert available(ledger, coach_budget) == Decimal("10000")

        approved = executor.apply(draft.id, Action.APPROVE, actors.lead)
        assert approved.request.status == RequestStatus.HR_PROCESSING
        assert available(ledger, coach_budget) == Decimal("8800")
        assert approved.budget_check.over_budget is False

        done = executor.apply(draft.id, Action.MARK_COMPLETED, actors.hr)
        assert done.request.status == RequestStatus.COMPLETED
        assert available(ledger, coach_budget) == Decimal("8800")

        assert recording_dispatcher.email_types == ["new request", "HR", "approved"]

    def test_booking_step(self, submitted_request, executor, actors, coach_budget):
        request = submitted_request("300")
        executor.apply(request.id, Action.APPROVE, actors.lead)

        booked = executor.apply(request.id, Action.BOOK, actors.hr)
        assert booked.request.status == RequestStatus.BOOKING
        done = executor.apply(request.id, Action.MARK_COMPLETED, actors.hr)
        assert done.request.status == RequestStatus.COMPLETED


class TestScenarioB:
    """Large request: approver, then CEO."""

    def test_large_request_needs_ceo(
        self, submitted_request, executor, ledger, coach_budget, actors, recording_dispatcher,
    ):
        request = submitted_request("8000")

        first = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert first.request.status == RequestStatus.AWAITING_CEO_APPROVAL
        assert available(ledger, coach_budget) == Decimal("10000")

        second = executor.apply(request.id, Action.APPROVE, actors.ceo)
        assert second.request.status == RequestStatus.HR_PROCESSING
        assert second.request.approved_by_ceo
        assert available(ledger, coach_budget) == Decimal("2000")
        assert recording_dispatcher.email_types == ["new request", "HR"]

    def test_exactly_threshold_goes_straight_to_hr(
        self, submitted_request, executor, ledger, coach_budget, actors,
    ):
        request = submitted_request("2500", "2500")
        outcome = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert outcome.request.status == RequestStatus.HR_PROCESSING
        assert available(ledger, coach_budget) == Decimal("5000")


class TestScenarioC:
    """HR changes the cost, sends it back, the approver denies."""

    def test_reapprove_then_deny(
        self, submitted_request, executor, item_service, ledger, comment_log,
        coach_budget, actors, recording_dispatcher,
    ):
        request = submitted_request("1200")
        executor.apply(request.id, Action.APPROVE, actors.lead)
        assert available(ledger, coach_budget) == Decimal("8800")

        changed = item_service.update_item(request.items[0].id, actors.hr, cost="1200.00")
        assert not changed.changed_by_hr
        changed = item_service.update_item(request.items[0].id, actors.hr, cost="1300")
        assert changed.changed_by_hr

        sent_back = executor.apply(request.id, Action.REAPPROVE, actors.hr, "cost adjusted")
        assert sent_back.request.status == RequestStatus.RESUBMITTED
        assert not sent_back.request.changed_by_hr
        assert [c.body for c in comment_log.list_for(request.id)] == ["cost adjusted"]

        denied = executor.apply(request.id, Action.DENY, actors.lead, "too expensive")
        assert denied.request.status == RequestStatus.REJECTED
        assert available(ledger, coach_budget) == Decimal("10000")
        assert not denied.request.holds_commitment
        assert [c.body for c in comment_log.list_for(request.id)] == [
            "cost adjusted", "too expensive",
        ]
        assert recording_dispatcher.directives[-1].comment == "too expensive"

    def test_reapproval_deducts_only_the_difference(
        self, submitted_request, executor, item_service, ledger, coach_budget, actors,
    ):
        request = submitted_request("1200")
        executor.apply(request.id, Action.APPROVE, actors.lead)
        item_service.update_item(request.items[0].id, actors.hr, cost="1500")
        executor.apply(request.id, Action.REAPPROVE, actors.hr, "price went up")

        outcome = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert outcome.request.status == RequestStatus.HR_PROCESSING
        assert outcome.request.committed_amount == Decimal("1500")
        assert available(ledger, coach_budget) == Decimal("8500")

    def test_reapproval_over_threshold_waits_for_ceo(
        self, submitted_request, executor, item_service, ledger, coach_budget, actors,
    ):
        request = submitted_request("4000")
        executor.apply(request.id, Action.APPROVE, actors.lead)
        item_service.update_item(request.items[0].id, actors.hr, cost="6000")
        executor.apply(request.id, Action.REAPPROVE, actors.hr, "venue changed")

        waiting = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert waiting.request.status == RequestStatus.AWAITING_CEO_APPROVAL
        assert available(ledger, coach_budget) == Decimal("6000")

        denied = executor.apply(request.id, Action.DENY, actors.ceo, "not this year")
        assert denied.request.status == RequestStatus.REJECTED
        assert available(ledger, coach_budget) == Decimal("10000")


class TestDenyWithoutComment:

    @pytest.mark.parametrize("comment", [None, "", "  "])
    def test_nothing_changes(
        self, submitted_request, executor, request_store, ledger, comment_log,
        coach_budget, actors, recording_dispatcher, comment,
    ):
        request = submitted_request("1200")
        sent_count = len(recording_dispatcher.directives)

        with pytest.raises(MissingCommentError):
            executor.apply(request.id, Action.DENY, actors.lead, comment)

        reloaded = request_store.load(request.id)
        assert reloaded.status == RequestStatus.SUBMITTED
        assert reloaded.version == request.version
        assert available(ledger, coach_budget) == Decimal("10000")
        assert comment_log.count_for(request.id) == 0
        assert len(recording_dispatcher.directives) == sent_count

    def test_deny_submitted_leaves_budget(
        self, submitted_request, executor, ledger, coach_budget, actors,
    ):
        request = submitted_request("1200")
        executor.apply(request.id, Action.DENY, actors.lead, "not now")
        assert available(ledger, coach_budget) == Decimal("10000")


class TestResubmission:

    def test_rejected_request_can_be_fixed_and_resent(
        self, submitted_request, executor, item_service, actors, coach_budget,
    ):
        request = submitted_request("1200")
        executor.apply(request.id, Action.DENY, actors.lead, "cheaper hotel please")
        item_service.update_item(request.items[0].id, actors.member, cost="900")

        resent = executor.apply(request.id, Action.SEND, actors.member)
        assert resent.request.status == RequestStatus.SUBMITTED
        assert resent.request.submission_date == request.submission_date

        approved = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert approved.request.committed_amount == Decimal("900")

    def test_ceo_flag_is_sticky_across_resubmission(
        self, submitted_request, executor, item_service, ledger, actors, coach_budget,
    ):
        request = submitted_request("8000")
        executor.apply(request.id, Action.APPROVE, actors.lead)
        executor.apply(request.id, Action.APPROVE, actors.ceo)
        assert available(ledger, coach_budget) == Decimal("2000")

        item_service.update_item(request.items[0].id, actors.hr, cost="8500")
        executor.apply(request.id, Action.REAPPROVE, actors.hr, "new venue")

        again = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert again.request.approved_by_ceo
        assert again.request.status == RequestStatus.HR_PROCESSING
        assert available(ledger, coach_budget) == Decimal("1500")

    def test_ceo_denial_keeps_flag_unset(
        self, submitted_request, executor, actors, coach_budget,
    ):
        request = submitted_request("8000")
        executor.apply(request.id, Action.APPROVE, actors.lead)
        executor.apply(request.id, Action.DENY, actors.ceo, "wait for Q3")
        executor.apply(request.id, Action.SEND, actors.member)

        outcome = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert not outcome.request.approved_by_ceo
        assert outcome.request.status == RequestStatus.AWAITING_CEO_APPROVAL


class TestDiscard:

    def test_discard_deletes_request_keeps_comments(
        self, create_request, executor, request_store, comment_log, actors,
    ):
        draft = create_request("50")
        outcome = executor.apply(draft.id, Action.DISCARD, actors.member, "duplicate")

        assert outcome.discarded
        with pytest.raises(RequestNotFoundError):
            request_store.load(draft.id)
        assert [c.body for c in comment_log.list_for(draft.id)] == ["duplicate"]

    def test_cannot_discard_submitted(self, submitted_request, executor, actors):
        request = submitted_request("50")
        with pytest.raises(InvalidTransitionError):
            executor.apply(request.id, Action.DISCARD, actors.member)


class TestAdvisoryAndMisc:

    def test_team_coach_verdict_does_not_block(
        self, submitted_request, executor, actors, coach_budget, comment_log,
    ):
        request = submitted_request("100")
        verdict = executor.apply(
            request.id, Action.TEAM_COACH_APPROVAL, actors.coach, "not convinced",
            verdict=TeamCoachVerdict.DISAPPROVE,
        )
        assert verdict.request.team_coach_approval == TeamCoachVerdict.DISAPPROVE
        assert verdict.request.status == RequestStatus.SUBMITTED

        approved = executor.apply(request.id, Action.APPROVE, actors.lead)
        assert approved.request.status == RequestStatus.HR_PROCESSING
        assert approved.request.team_coach_approval == TeamCoachVerdict.DISAPPROVE
        assert comment_log.count_for(request.id) == 1

    def test_outsider_rejected(self, submitted_request, executor, actors):
        request = submitted_request("100")
        with pytest.raises(UnauthorizedActorError):
            executor.apply(request.id, Action.APPROVE, actors.outsider)

    def test_unknown_request(self, executor, db_tables, actors):
        with pytest.raises(RequestNotFoundError):
            executor.apply(uuid4(), Action.SEND, actors.member)

    def test_unknown_approver_on_create(self, executor, actors, db_tables):
        with pytest.raises(ApproverNotFoundError):
            executor.create_request(actors.member, uuid4(), "Orphan")

    def test_missing_budget_still_approves(
        self, submitted_request, executor, actors, captured_logs,
    ):
        request = submitted_request("100")
        outcome = executor.apply(request.id, Action.APPROVE, actors.lead)

        assert outcome.request.status == RequestStatus.HR_PROCESSING
        assert outcome.budget_check is None
        assert not outcome.request.holds_commitment
        assert executor.check_budget(request.id) is None

    def test_available_actions(self, submitted_request, executor, actors):
        request = submitted_request("100")
        assert set(executor.available_actions(request.id, actors.lead)) == {
            Action.APPROVE, Action.DENY,
        }
        assert executor.available_actions(request.id, actors.member) == ()

    def test_backup_approves_for_practice_lead(
        self, session, executor, ledger, coach_budget, actors,
        make_approver_record, make_item,
    ):
        record = make_approver_record(backup_email="deputy@example.com")
        session.add(ApproverModel.from_dto(record))
        session.flush()
        draft = executor.create_request(
            actors.member, record.id, "Deputy approval", items=(make_item("400"),),
        )
        executor.apply(draft.id, Action.SEND, actors.member)

        outcome = executor.apply(draft.id, Action.APPROVE, Actor("deputy@example.com"))
        assert outcome.request.status == RequestStatus.HR_PROCESSING
        assert outcome.acting_role == Role.APPROVER
        assert available(ledger, coach_budget) == Decimal("9600")


class TestLogging:

    def test_transition_logged_with_context(
        self, submitted_request, executor, actors, coach_budget, captured_logs,
    ):
        request = submitted_request("100")
        executor.apply(request.id, Action.APPROVE, actors.lead)

        applied = [r for r in captured_logs() if r["message"] == "workflow_transition_applied"]
        last = applied[-1]
        assert last["from_status"] == "submitted"
        assert last["to_status"] == "hr_processing"
        assert last["request_id"] == str(request.id)
        assert last["actor"] == actors.lead.email
        assert last["action"] == "approve"
        assert "correlation_id" in last

    def test_rollback_logged(self, submitted_request, executor, actors, captured_logs):
        request = submitted_request("100")
        with pytest.raises(MissingCommentError):
            executor.apply(request.id, Action.DENY, actors.lead, "")

        rolled = [r for r in captured_logs() if r["message"] == "workflow_action_rolled_back"]
        assert rolled[-1]["exc_code"] == "MISSING_COMMENT"
