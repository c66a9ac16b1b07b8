"""
ORM-level immutability enforcement for comments.

Comments are append-only: once flushed, a comment row can be neither
updated nor deleted through the ORM.  SQLAlchemy fires ``before_update``
and ``before_delete`` mapper events before any SQL is sent; the listeners
below raise ``ImmutabilityViolationError`` there, so the transaction is
aborted and the database is never touched.

Usage:
    from ttl_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

    # In tests that must violate the rule on purpose:
    from ttl_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event

from ttl_kernel.exceptions import ImmutabilityViolationError
from ttl_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_comment_immutability(mapper, connection, target):
    """Prevent any updates to Comment records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Comment",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Comment",
        entity_id=str(target.id),
        reason="Comments are immutable and cannot be modified",
    )


def _check_comment_delete(mapper, connection, target):
    """Prevent deletion of Comment records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Comment",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Comment",
        entity_id=str(target.id),
        reason="Comments cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the append-only listeners.  Safe to call more than once.

    Call this after the models are imported and before any database
    operations begin.
    """
    from ttl_kernel.models.comment import CommentModel

    if not event.contains(CommentModel, "before_update", _check_comment_immutability):
        event.listen(CommentModel, "before_update", _check_comment_immutability)
    if not event.contains(CommentModel, "before_delete", _check_comment_delete):
        event.listen(CommentModel, "before_delete", _check_comment_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from ttl_kernel.models.comment import CommentModel

    _safe_remove_listener(CommentModel, "before_update", _check_comment_immutability)
    _safe_remove_listener(CommentModel, "before_delete", _check_comment_delete)
