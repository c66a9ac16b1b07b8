"""
Tests for the request value objects: status labels, derived totals and
the deadline date, plus the deterministic clock used throughout.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ttl_kernel.domain.clock import DeterministicClock
from ttl_kernel.domain.request import (
    ItemType,
    Request,
    RequestItem,
    RequestStatus,
    compute_deadline_date,
    compute_total_cost,
)


def _item(cost, start=None):
    return RequestItem(
        id=uuid4(),
        request_id=uuid4(),
        item_type=ItemType.TRAVEL,
        title="Train to Berlin",
        cost=Decimal(cost),
        start_date=start,
    )


def _request(**kwargs):
    return Request(
        id=uuid4(),
        title="Berlin trip",
        author_email="a@example.com",
        approver_id=uuid4(),
        **kwargs,
    )


class TestStatusLabels:

    @pytest.mark.parametrize("status,label", [
        (RequestStatus.DRAFT, "Saved"),
        (RequestStatus.SUBMITTED, "Sent for approval"),
        (RequestStatus.RESUBMITTED, "Needs reapproval"),
        (RequestStatus.AWAITING_CEO_APPROVAL, "Awaiting CEO approval"),
        (RequestStatus.HR_PROCESSING, "In process by HR"),
        (RequestStatus.REJECTED, "Declined"),
        (RequestStatus.BOOKING, "Booking"),
        (RequestStatus.COMPLETED, "Completed"),
    ])
    def test_label(self, status, label):
        assert status.label == label

    def test_status_set_is_closed(self):
        assert len(RequestStatus) == 8
        with pytest.raises(ValueError):
            RequestStatus("approved")


class TestDerivedFields:

    def test_total_is_sum_of_items(self):
        items = (_item("100.50"), _item("200"), _item("0"))
        assert compute_total_cost(items) == Decimal("300.50")

    def test_total_of_no_items_is_zero(self):
        assert compute_total_cost(()) == Decimal("0")

    def test_deadline_is_earliest_start(self):
        items = (
            _item("1", date(2025, 6, 1)),
            _item("1", None),
            _item("1", date(2025, 4, 15)),
        )
        assert compute_deadline_date(items) == date(2025, 4, 15)

    def test_deadline_none_without_start_dates(self):
        assert compute_deadline_date((_item("1"),)) is None

    def test_with_items_recomputes(self):
        request = _request()
        updated = request.with_items((_item("40", date(2025, 9, 1)), _item("2")))

        assert updated.total_cost == Decimal("42")
        assert updated.deadline_date == date(2025, 9, 1)
        assert request.total_cost == Decimal("0")

    def test_holds_commitment(self):
        assert not _request().holds_commitment
        assert _request(committed_amount=Decimal("0"), committed_budget_id=uuid4()).holds_commitment


class TestDeterministicClock:

    def test_default_time(self):
        clock = DeterministicClock()
        assert clock.now() == datetime(2025, 3, 3, 9, 0, 0, tzinfo=timezone.utc)
        assert clock.today() == date(2025, 3, 3)
        assert clock.current_year() == 2025

    def test_advance_and_set(self):
        clock = DeterministicClock()
        clock.advance(60)
        assert clock.now().minute == 1
        clock.set_time(datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert clock.current_year() == 2026
        assert clock.tick().second == 1
