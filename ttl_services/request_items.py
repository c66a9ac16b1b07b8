"""
ttl_services.request_items -- Editing the cost lines of a request.

Responsibility:
    Adds, changes and removes request items.  Every edit validates the
    item (cost, link, software licence inputs), recomputes the request's
    ``total_cost`` and ``deadline_date`` from the live items and, when HR
    changes a cost after approval, raises the ``changed_by_hr`` flag that
    forces a re-approval.

Architecture position:
    Services layer.  Uses ``ttl_engines.item_costs`` for licence costs and
    kernel services for persistence.

Invariants enforced:
    - ``total_cost`` always equals the sum of the live items' costs.
    - Requesters edit in ``draft``/``rejected``; HR edits in
      ``hr_processing``.  Anything else is ``ItemEditNotAllowedError``.
    - An HR edit that changes the total sets ``changed_by_hr``.

Failure modes:
    - InvalidCostError / InvalidLinkError / ValidationError on bad input.
    - ItemEditNotAllowedError, RequestNotFoundError,
      RequestItemNotFoundError, ConflictError.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ttl_engines.item_costs import calculate_license_cost, normalize_license_users
from ttl_kernel.domain.request import (
    ItemType,
    LicenseType,
    LicensingPeriod,
    Request,
    RequestItem,
    RequestStatus,
)
from ttl_kernel.domain.roles import Actor
from ttl_kernel.domain.validation import validate_cost, validate_link
from ttl_kernel.exceptions import ItemEditNotAllowedError, ValidationError
from ttl_kernel.logging_config import get_logger
from ttl_kernel.services.request_store import RequestStore

logger = get_logger("services.request_items")

_REQUESTER_EDITABLE = frozenset({RequestStatus.DRAFT, RequestStatus.REJECTED})
_HR_EDITABLE = frozenset({RequestStatus.HR_PROCESSING})

_EDITABLE_FIELDS = frozenset({
    "item_type", "title", "cost", "start_date", "end_date", "provider",
    "location", "link", "unit_cost", "license_type", "licensing",
    "license_users",
})


class RequestItemService:
    """
    Item edits with total/deadline recomputation.

    Transaction boundary: commits on success, rolls back on failure.
    """

    def __init__(self, session: Session):
        self._session = session
        self._store = RequestStore(session)

    def add_item(
        self,
        request_id: UUID,
        actor: Actor,
        *,
        item_type: ItemType | str,
        title: str,
        cost: Any = None,
        start_date: date | None = None,
        end_date: date | None = None,
        provider: str | None = None,
        location: str | None = None,
        link: str | None = None,
        unit_cost: Any = None,
        license_type: LicenseType | str | None = None,
        licensing: LicensingPeriod | str | None = None,
        license_users: Any = None,
    ) -> Request:
        """Add an item and return the updated request."""
        return self._edit(
            request_id,
            actor,
            lambda items: items + (self._build_item(
                item_id=uuid4(),
                request_id=request_id,
                item_type=item_type,
                title=title,
                cost=cost,
                start_date=start_date,
                end_date=end_date,
                provider=provider,
                location=location,
                link=link,
                unit_cost=unit_cost,
                license_type=license_type,
                licensing=licensing,
                license_users=license_users,
            ),),
            "request_item_added",
        )

    def update_item(self, item_id: UUID, actor: Actor, **changes: Any) -> Request:
        """Change fields of an item and return the updated request."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown item fields: {sorted(unknown)}")

        current = self._store.get_item(item_id)

        def _apply(items: tuple[RequestItem, ...]) -> tuple[RequestItem, ...]:
            merged = {
                field: getattr(current, field) for field in _EDITABLE_FIELDS
            }
            merged.update(changes)
            updated = self._build_item(
                item_id=current.id, request_id=current.request_id, **merged,
            )
            return tuple(updated if item.id == item_id else item for item in items)

        return self._edit(current.request_id, actor, _apply, "request_item_updated")

    def delete_item(self, item_id: UUID, actor: Actor) -> Request:
        """Remove an item and return the updated request."""
        current = self._store.get_item(item_id)
        return self._edit(
            current.request_id,
            actor,
            lambda items: tuple(item for item in items if item.id != item_id),
            "request_item_deleted",
        )

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _edit(self, request_id: UUID, actor: Actor, change, event: str) -> Request:
        try:
            request = self._store.load(request_id)
            by_hr = self._check_editable(request, actor)

            new_items = change(request.items)
            updated = request.with_items(new_items)
            if by_hr and _item_costs(new_items) != _item_costs(request.items):
                updated = replace(updated, changed_by_hr=True)

            self._store.save(updated, updated_by=actor.email)
            kept = {item.id for item in new_items}
            for item in request.items:
                if item.id not in kept:
                    self._store.delete_item(item.id)
            self._store.save_items(
                [item for item in new_items if item not in request.items],
                updated_by=actor.email,
            )
            stored = self._store.load(request_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            event,
            extra={
                "request_id": str(request_id),
                "actor": actor.email,
                "total_cost": str(stored.total_cost),
                "item_count": len(stored.items),
                "changed_by_hr": stored.changed_by_hr,
            },
        )
        return stored

    @staticmethod
    def _check_editable(request: Request, actor: Actor) -> bool:
        """Return True when the edit is an HR edit."""
        if request.status in _REQUESTER_EDITABLE and actor.email == request.author_email:
            return False
        if request.status in _HR_EDITABLE and actor.is_hr:
            return True
        raise ItemEditNotAllowedError(
            str(request.id), request.status.value, actor.email,
        )

    @staticmethod
    def _build_item(
        *,
        item_id: UUID,
        request_id: UUID,
        item_type: ItemType | str,
        title: str,
        cost: Any,
        start_date: date | None,
        end_date: date | None,
        provider: str | None,
        location: str | None,
        link: str | None,
        unit_cost: Any,
        license_type: LicenseType | str | None,
        licensing: LicensingPeriod | str | None,
        license_users: Any,
    ) -> RequestItem:
        item_type = ItemType(item_type)
        if not title or not title.strip():
            raise ValidationError("Item title is required")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("Item end date is before its start date")
        if link is not None and link.strip():
            link = validate_link(link.strip())
        else:
            link = None

        users = normalize_license_users(license_users)
        price: Decimal | None = None
        l_type = LicenseType(license_type) if license_type else None
        period = LicensingPeriod(licensing) if licensing else None

        if item_type == ItemType.SOFTWARE and unit_cost is not None:
            if l_type is None or period is None:
                raise ValidationError(
                    "Software items need a licence type and a licensing period"
                )
            price = validate_cost(unit_cost)
            amount = calculate_license_cost(
                unit_cost=price, license_type=l_type, licensing=period, users=users,
            )
        elif cost is not None:
            amount = validate_cost(cost)
        else:
            raise ValidationError("Item cost is required")

        return RequestItem(
            id=item_id,
            request_id=request_id,
            item_type=item_type,
            title=title.strip(),
            cost=amount,
            start_date=start_date,
            end_date=end_date,
            provider=provider,
            location=location,
            link=link,
            unit_cost=price,
            license_type=l_type,
            licensing=period,
            license_users=users,
        )


def _item_costs(items: tuple[RequestItem, ...]) -> dict[UUID, Decimal]:
    return {item.id: item.cost for item in items}
