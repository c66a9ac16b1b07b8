"""
RequestStore -- persistence of requests and their items.

Responsibility:
    Loads a request (with items) as a frozen ``Request`` snapshot, writes a
    new snapshot back, upserts/deletes items and deletes a discarded
    request together with its items.

Architecture position:
    Kernel > Services -- imperative shell.  The only writer of
    ``ttl_requests`` and ``ttl_request_items``.

Invariants enforced:
    - Optimistic concurrency: ``save`` refuses a snapshot whose ``version``
      differs from the row it would overwrite, and a flush that finds the
      row changed underneath (StaleDataError) becomes ``ConflictError``.

Failure modes:
    - RequestNotFoundError / RequestItemNotFoundError.
    - ConflictError on a stale snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ttl_kernel.domain.request import Request, RequestItem
from ttl_kernel.exceptions import (
    ConflictError,
    RequestItemNotFoundError,
    RequestNotFoundError,
)
from ttl_kernel.logging_config import get_logger
from ttl_kernel.models.request import RequestItemModel, RequestModel
from ttl_kernel.services.base import BaseService

logger = get_logger("services.request_store")


class RequestStore(BaseService):
    """Request/item storage over SQLAlchemy."""

    def __init__(self, session: Session):
        super().__init__(session)

    def load(self, request_id: UUID) -> Request:
        """Request ``request_id`` with its items.

        Raises:
            RequestNotFoundError: no such request.
        """
        return self._get_model(request_id).to_dto()

    def create(self, request: Request, created_by: str) -> Request:
        """Insert a new request header (and any items it carries)."""
        model = RequestModel.from_dto(request, created_by=created_by)
        self.session.add(model)
        for item in request.items:
            model.items.append(RequestItemModel.from_dto(item, created_by=created_by))
        self.session.flush()
        logger.info(
            "request_created",
            extra={
                "request_id": str(model.id),
                "author": request.author_email,
                "item_count": len(request.items),
            },
        )
        return model.to_dto()

    def save(self, request: Request, updated_by: str | None = None) -> Request:
        """Write ``request``'s header fields over the stored row.

        Returns the stored snapshot with the bumped ``version``.

        Raises:
            ConflictError: ``request.version`` is stale.
        """
        model = self._get_model(request.id)
        if model.version != request.version:
            raise ConflictError(
                "Request",
                str(request.id),
                detail=f"expected version {request.version}, found {model.version}",
            )
        model.apply_dto(request)
        if updated_by is not None:
            model.updated_by = updated_by
        self._flush_or_conflict(request.id)
        return model.to_dto()

    def save_items(self, items: Iterable[RequestItem], updated_by: str) -> None:
        """Insert new items and update existing ones."""
        for item in items:
            model = self.session.get(RequestItemModel, item.id)
            if model is None:
                new_model = RequestItemModel.from_dto(item, created_by=updated_by)
                parent = self.session.get(RequestModel, item.request_id)
                if parent is None:
                    raise RequestNotFoundError(str(item.request_id))
                parent.items.append(new_model)
            else:
                model.apply_dto(item)
                model.updated_by = updated_by
        self.session.flush()

    def get_item(self, item_id: UUID) -> RequestItem:
        return self._get_item_model(item_id).to_dto()

    def delete_item(self, item_id: UUID) -> None:
        model = self._get_item_model(item_id)
        parent = self.session.get(RequestModel, model.request_id)
        if parent is not None and model in parent.items:
            parent.items.remove(model)
        else:
            self.session.delete(model)
        self.session.flush()

    def delete_request_and_items(self, request_id: UUID) -> None:
        """Delete the request row and, by cascade, its items."""
        model = self._get_model(request_id)
        item_count = len(model.items)
        self.session.delete(model)
        self._flush_or_conflict(request_id)
        logger.info(
            "request_deleted",
            extra={"request_id": str(request_id), "item_count": item_count},
        )

    def _flush_or_conflict(self, request_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "request_version_conflict",
                extra={"request_id": str(request_id)},
            )
            raise ConflictError("Request", str(request_id), detail=str(exc)) from exc

    def _get_model(self, request_id: UUID) -> RequestModel:
        model = self.session.execute(
            select(RequestModel).where(RequestModel.id == request_id)
        ).scalar_one_or_none()
        if model is None:
            raise RequestNotFoundError(str(request_id))
        return model

    def _get_item_model(self, item_id: UUID) -> RequestItemModel:
        model = self.session.get(RequestItemModel, item_id)
        if model is None:
            raise RequestItemNotFoundError(str(item_id))
        return model
