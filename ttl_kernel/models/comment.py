"""
Module: ttl_kernel.models.comment
Responsibility: ORM persistence for request comments.  Append-only.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Comments are immutable once created -- no UPDATE, no DELETE
      (listeners in db/immutability.py).
    - ``request_id`` is a plain indexed column, not a foreign key: the
      comment trail of a discarded request outlives the request.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ttl_kernel.db.base import EMAIL_LENGTH, Base, UUIDString

if TYPE_CHECKING:
    from ttl_kernel.domain.comment import Comment


class CommentModel(Base):
    """Persistent comment. Append-only."""

    __tablename__ = "ttl_comments"

    __table_args__ = (
        UniqueConstraint("request_id", "position", name="uq_ttl_comments_position"),
    )

    request_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)
    author_email: Mapped[str] = mapped_column(String(EMAIL_LENGTH), nullable=False)
    author_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # 1-based order within the request
    position: Mapped[int] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Comment {self.id} request={self.request_id} by={self.author_email}>"

    def to_dto(self) -> Comment:
        """Convert ORM model to frozen domain DTO."""
        from ttl_kernel.domain.comment import Comment as CommentDTO

        return CommentDTO(
            id=self.id,
            request_id=self.request_id,
            author_email=self.author_email,
            body=self.body,
            created_at=self.created_at,
            title=self.title,
            author_name=self.author_name,
        )
