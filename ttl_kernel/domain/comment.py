"""Comment value object and the mandatory-comment rule."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from ttl_kernel.exceptions import MissingCommentError


@dataclass(frozen=True)
class Comment:
    """A free-text remark on a request. Immutable once created."""

    id: UUID
    request_id: UUID
    author_email: str
    body: str
    created_at: datetime
    title: str = ""
    author_name: str | None = None


def require_comment(body: str | None, action: str, request_id: str | None = None) -> str:
    """Return the stripped comment or raise when it is blank."""
    if body is None or not body.strip():
        raise MissingCommentError(action, request_id)
    return body.strip()


def normalize_comment(body: str | None) -> str | None:
    """Strip an optional comment; blank becomes None."""
    if body is None or not body.strip():
        return None
    return body.strip()
