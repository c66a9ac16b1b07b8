"""
CommentLog -- append-only comment trail of a request.

Responsibility:
    Records free-text comments against a request and lists them back in
    the order they were written.  The comment that a deny or reapprove
    carries is written here in the same transaction as the status change.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners in
      ``ttl_kernel.db.immutability``).
    - Blank bodies are rejected before anything is written.
    - ``list_for`` yields oldest first.
"""

from __future__ import annotations

from collections.abc import Iterator
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ttl_kernel.domain.clock import Clock, SystemClock
from ttl_kernel.domain.comment import Comment, require_comment
from ttl_kernel.logging_config import get_logger
from ttl_kernel.models.comment import CommentModel
from ttl_kernel.services.base import BaseService

logger = get_logger("services.comment_log")


class CommentLog(BaseService):
    """Append-only comment storage."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def add(
        self,
        request_id: UUID,
        author_email: str,
        body: str,
        *,
        author_name: str | None = None,
        title: str = "",
    ) -> UUID:
        """Append a comment and return its id.

        Raises:
            MissingCommentError: ``body`` is empty or whitespace.
        """
        text = require_comment(body, "comment on", str(request_id))
        position = self.session.execute(
            select(func.coalesce(func.max(CommentModel.position), 0)).where(
                CommentModel.request_id == request_id
            )
        ).scalar_one() + 1

        model = CommentModel(
            id=uuid4(),
            request_id=request_id,
            title=title,
            body=text,
            author_email=author_email,
            author_name=author_name,
            created_at=self._clock.now(),
            position=position,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "comment_added",
            extra={
                "comment_id": str(model.id),
                "request_id": str(request_id),
                "author": author_email,
                "position": position,
            },
        )
        return model.id

    def list_for(self, request_id: UUID) -> Iterator[Comment]:
        """Comments of ``request_id``, oldest first.  Single pass."""
        rows = self.session.execute(
            select(CommentModel)
            .where(CommentModel.request_id == request_id)
            .order_by(CommentModel.position)
        ).scalars()
        for row in rows:
            yield row.to_dto()

    def count_for(self, request_id: UUID) -> int:
        return self.session.execute(
            select(func.count(CommentModel.id)).where(
                CommentModel.request_id == request_id
            )
        ).scalar_one()
