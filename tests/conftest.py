"""
Pytest fixtures for the TTL request test suite.

Provides:
- A SQLite database (in-memory by default) with per-test rollback isolation
- A deterministic clock (2025-03-03 09:00 UTC)
- One approval line (member -> coach -> practice lead -> CEO) and its
  coach's 2025 budget
- A recording notification dispatcher and captured JSON logs
- Factories for items and requests driven through WorkflowExecutor

Environment Variables:
- DATABASE_URL: database URL (default ``sqlite://``).  A PostgreSQL URL
  runs the same suite against a real server.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from ttl_config import WorkflowConfig
from ttl_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, reset_engine
from ttl_kernel.domain.budget import Budget
from ttl_kernel.domain.clock import DeterministicClock
from ttl_kernel.domain.notification import NotificationDirective
from ttl_kernel.domain.request import ItemType, RequestItem
from ttl_kernel.domain.roles import Actor, ApproverRecord
from ttl_kernel.domain.workflow import Action
from ttl_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ttl_kernel.models.approver import ApproverModel
from ttl_kernel.services.budget_ledger import BudgetLedger
from ttl_kernel.services.comment_log import CommentLog
from ttl_kernel.services.request_store import RequestStore
from ttl_services.request_items import RequestItemService
from ttl_services.workflow_executor import WorkflowExecutor

MEMBER_EMAIL = "dana.member@example.com"
COACH_EMAIL = "casey.coach@example.com"
LEAD_EMAIL = "lee.lead@example.com"
CEO_EMAIL = "morgan.ceo@example.com"
HR_EMAIL = "hr.office@example.com"
OUTSIDER_EMAIL = "someone.else@example.com"

BUDGET_YEAR = 2025
BUDGET_TOTAL = Decimal("10000")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ttl_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, executor):
            executor.apply(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ttl_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def db_engine():
    engine = init_engine_from_url(get_database_url())
    yield engine
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    create_tables()
    yield True
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection:
    ``session.commit()`` inside the code under test releases a savepoint
    and the outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 3, 3, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    return WorkflowConfig()


# =============================================================================
# People and approval line
# =============================================================================


@dataclass(frozen=True)
class Actors:
    member: Actor
    coach: Actor
    lead: Actor
    ceo: Actor
    hr: Actor
    outsider: Actor


@pytest.fixture
def actors() -> Actors:
    return Actors(
        member=Actor(MEMBER_EMAIL, "Dana Member"),
        coach=Actor(COACH_EMAIL, "Casey Coach"),
        lead=Actor(LEAD_EMAIL, "Lee Lead"),
        ceo=Actor(CEO_EMAIL, "Morgan Ceo"),
        hr=Actor(HR_EMAIL, "HR Office", is_hr=True),
        outsider=Actor(OUTSIDER_EMAIL, "Someone Else"),
    )


def _make_approver_record(**overrides) -> ApproverRecord:
    fields = dict(
        id=uuid4(),
        team_member_email=MEMBER_EMAIL,
        team_coach_email=COACH_EMAIL,
        practice_lead_email=LEAD_EMAIL,
        ceo_email=CEO_EMAIL,
        team_member_name="Dana Member",
        team_coach_name="Casey Coach",
        practice_lead_name="Lee Lead",
        ceo_name="Morgan Ceo",
    )
    fields.update(overrides)
    return ApproverRecord(**fields)


@pytest.fixture
def make_approver_record():
    """Factory: an approver line (not persisted)."""
    return _make_approver_record


@pytest.fixture
def approver_record(session: Session) -> ApproverRecord:
    """The member's approval line, persisted."""
    record = _make_approver_record()
    session.add(ApproverModel.from_dto(record))
    session.flush()
    return record


@pytest.fixture
def coach_budget(session: Session, approver_record) -> Budget:
    """10 000 for the coach in 2025 (the deterministic clock's year)."""
    return BudgetLedger(session).open_budget(
        COACH_EMAIL, BUDGET_YEAR, BUDGET_TOTAL, created_by=HR_EMAIL,
        team_coach_name="Casey Coach",
    )


# =============================================================================
# Notification
# =============================================================================


class RecordingDispatcher:
    """Keeps every directive it is handed."""

    def __init__(self):
        self.directives: list[NotificationDirective] = []

    def dispatch(self, directive: NotificationDirective) -> None:
        self.directives.append(directive)

    @property
    def email_types(self) -> list[str]:
        return [d.email_type.value for d in self.directives]


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def executor(session, deterministic_clock, workflow_config, recording_dispatcher):
    return WorkflowExecutor(
        session,
        clock=deterministic_clock,
        config=workflow_config,
        dispatcher=recording_dispatcher,
    )


@pytest.fixture
def item_service(session) -> RequestItemService:
    return RequestItemService(session)


@pytest.fixture
def ledger(session) -> BudgetLedger:
    return BudgetLedger(session)


@pytest.fixture
def comment_log(session, deterministic_clock) -> CommentLog:
    return CommentLog(session, deterministic_clock)


@pytest.fixture
def request_store(session) -> RequestStore:
    return RequestStore(session)


# =============================================================================
# Request factories
# =============================================================================


def _make_item(cost, *, title="Conference ticket", start_date=None, **overrides) -> RequestItem:
    fields = dict(
        id=uuid4(),
        request_id=uuid4(),
        item_type=ItemType.TRAINING,
        title=title,
        cost=Decimal(str(cost)),
        start_date=start_date or date(2025, 5, 12),
        end_date=None,
    )
    fields.update(overrides)
    return RequestItem(**fields)


@pytest.fixture
def make_item():
    """Factory: a training item with the given cost."""
    return _make_item


@pytest.fixture
def create_request(executor, actors, approver_record):
    """Factory: a draft request by the member with one item per cost."""

    def _create(*costs, title="PyCon Europe"):
        items = tuple(_make_item(cost, title=f"Item {i}") for i, cost in enumerate(costs, 1))
        return executor.create_request(
            actors.member, approver_record.id, title,
            goal="Keep up with the ecosystem", items=items,
        )

    return _create


@pytest.fixture
def submitted_request(create_request, executor, actors):
    """Factory: a request that has been sent for approval."""

    def _submit(*costs, title="PyCon Europe"):
        draft = create_request(*costs, title=title)
        return executor.apply(draft.id, Action.SEND, actors.member).request

    return _submit
