"""
Tests for RequestStore: round trip of requests and items, optimistic
version checks and cascade deletion.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ttl_kernel.domain.request import (
    ItemType,
    LicenseType,
    LicensingPeriod,
    Request,
    RequestStatus,
)
from ttl_kernel.exceptions import (
    ConflictError,
    RequestItemNotFoundError,
    RequestNotFoundError,
)
from ttl_kernel.models.request import RequestItemModel


@pytest.fixture
def stored(request_store, approver_record, make_item, session):
    request_id = uuid4()
    items = (
        make_item("100", request_id=request_id, start_date=date(2025, 6, 1)),
        make_item(
            "240",
            request_id=request_id,
            item_type=ItemType.SOFTWARE,
            title="IDE licence",
            unit_cost=Decimal("10"),
            license_type=LicenseType.INDIVIDUAL,
            licensing=LicensingPeriod.MONTHLY,
            license_users=("alice", "bob"),
            start_date=date(2025, 4, 1),
        ),
    )
    draft = Request(
        id=request_id,
        title="Tooling",
        author_email="dana.member@example.com",
        approver_id=approver_record.id,
    ).with_items(items)
    created = request_store.create(draft, created_by="dana.member@example.com")
    session.commit()
    return created


class TestRoundTrip:

    def test_create_and_load(self, request_store, stored):
        loaded = request_store.load(stored.id)

        assert loaded.status == RequestStatus.DRAFT
        assert loaded.total_cost == Decimal("340")
        assert loaded.deadline_date == date(2025, 4, 1)
        assert loaded.version == 1
        assert len(loaded.items) == 2

    def test_software_fields_survive(self, request_store, stored):
        software = next(i for i in request_store.load(stored.id).items if i.unit_cost)
        assert software.license_type == LicenseType.INDIVIDUAL
        assert software.licensing == LicensingPeriod.MONTHLY
        assert software.license_users == ("alice", "bob")

    def test_load_unknown(self, request_store, db_tables):
        with pytest.raises(RequestNotFoundError):
            request_store.load(uuid4())


class TestSave:

    def test_save_bumps_version(self, request_store, stored):
        saved = request_store.save(
            replace(stored, status=RequestStatus.SUBMITTED, submission_date=date(2025, 3, 3)),
            updated_by="dana.member@example.com",
        )
        assert saved.version == 2
        assert saved.status == RequestStatus.SUBMITTED
        assert request_store.load(stored.id).submission_date == date(2025, 3, 3)

    def test_stale_snapshot_conflicts(self, request_store, stored):
        request_store.save(replace(stored, title="Tooling 2025"))
        with pytest.raises(ConflictError) as exc_info:
            request_store.save(replace(stored, title="Overwrite"))

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert request_store.load(stored.id).title == "Tooling 2025"

    def test_save_items_adds_and_updates(self, request_store, stored, make_item):
        first = stored.items[0]
        new_item = make_item("50", request_id=stored.id, title="Parking")
        request_store.save_items(
            [replace(first, cost=Decimal("120")), new_item],
            updated_by="hr.office@example.com",
        )

        items = {i.title: i for i in request_store.load(stored.id).items}
        assert items[first.title].cost == Decimal("120")
        assert items["Parking"].cost == Decimal("50")

    def test_save_items_for_unknown_request(self, request_store, stored, make_item):
        with pytest.raises(RequestNotFoundError):
            request_store.save_items([make_item("1")], updated_by="x@example.com")


class TestDelete:

    def test_delete_item(self, request_store, stored):
        request_store.delete_item(stored.items[0].id)
        assert len(request_store.load(stored.id).items) == 1
        with pytest.raises(RequestItemNotFoundError):
            request_store.get_item(stored.items[0].id)

    def test_delete_request_cascades(self, request_store, stored, session):
        request_store.delete_request_and_items(stored.id)

        with pytest.raises(RequestNotFoundError):
            request_store.load(stored.id)
        remaining = session.execute(
            select(RequestItemModel).where(RequestItemModel.request_id == stored.id)
        ).scalars().all()
        assert remaining == []
