"""
Tests for best-effort notification dispatch.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ttl_kernel.domain.notification import EmailType, NotificationDirective
from ttl_kernel.services.notification_service import (
    LoggingNotificationDispatcher,
    NotificationService,
)


class ExplodingDispatcher:
    def dispatch(self, directive):
        raise ConnectionError("mail flow unreachable")


@pytest.fixture
def directive():
    return NotificationDirective(
        email_type=EmailType.HR,
        request_id=uuid4(),
        title="Workshop",
        total_cost=Decimal("1200"),
        author_email="member@example.com",
        author_name=None,
        approver_email="lead@example.com",
        approver_title=None,
        team_coach_email="coach@example.com",
        team_coach_title=None,
    )


class TestNotificationService:

    def test_delivers(self, directive, recording_dispatcher):
        service = NotificationService(recording_dispatcher)
        assert service.send(directive) is True
        assert recording_dispatcher.directives == [directive]

    def test_none_is_ignored(self, recording_dispatcher):
        assert NotificationService(recording_dispatcher).send(None) is False
        assert recording_dispatcher.directives == []

    def test_disabled(self, directive, recording_dispatcher):
        service = NotificationService(recording_dispatcher, enabled=False)
        assert service.send(directive) is False
        assert recording_dispatcher.directives == []

    def test_failure_is_logged_not_raised(self, directive, captured_logs):
        service = NotificationService(ExplodingDispatcher())
        assert service.send(directive) is False

        failed = next(
            r for r in captured_logs() if r["message"] == "notification_dispatch_failed"
        )
        assert failed["error_code"] == "DISPATCH_FAILED"
        assert failed["email_type"] == "HR"
        assert failed["exc_type"] == "ConnectionError"
        assert "mail flow unreachable" in failed["reason"]

    def test_default_dispatcher_logs_payload(self, directive, captured_logs):
        NotificationService().send(directive)
        record = next(r for r in captured_logs() if r["message"] == "notification_directive")
        assert record["payload"]["emailType"] == "HR"
        assert record["payload"]["requestId"] == str(directive.request_id)

    def test_logging_dispatcher_is_default(self):
        assert isinstance(NotificationService()._dispatcher, LoggingNotificationDispatcher)
