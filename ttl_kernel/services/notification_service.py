"""
NotificationService -- best-effort hand-off of notification directives.

Responsibility:
    Passes the directive produced by the workflow engine to the configured
    ``NotificationDispatcher`` after the transition has committed.  A
    failing dispatcher is logged as ``notification_dispatch_failed`` and
    never propagates: the transition already happened.

Architecture position:
    Kernel > Services.  Holds no session; called by ``WorkflowExecutor``
    after commit.
"""

from __future__ import annotations

from ttl_kernel.domain.notification import (
    NotificationDirective,
    NotificationDispatcher,
)
from ttl_kernel.exceptions import DispatchError
from ttl_kernel.logging_config import get_logger

logger = get_logger("services.notification")


class LoggingNotificationDispatcher:
    """Dispatcher that only writes the directive payload to the log.

    Default when no e-mail flow is wired in.
    """

    def dispatch(self, directive: NotificationDirective) -> None:
        logger.info(
            "notification_directive",
            extra={"payload": directive.to_payload()},
        )


class NotificationService:
    """Best-effort wrapper around a ``NotificationDispatcher``."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher | None = None,
        enabled: bool = True,
    ):
        self._dispatcher = dispatcher or LoggingNotificationDispatcher()
        self._enabled = enabled

    def send(self, directive: NotificationDirective | None) -> bool:
        """Dispatch ``directive``.  Returns True only if it was delivered."""
        if directive is None:
            return False
        if not self._enabled:
            logger.debug(
                "notification_suppressed",
                extra={
                    "email_type": directive.email_type.value,
                    "request_id": str(directive.request_id),
                },
            )
            return False
        try:
            self._dispatcher.dispatch(directive)
        except Exception as exc:
            error = DispatchError(
                directive.email_type.value, str(directive.request_id), str(exc),
            )
            logger.error(
                "notification_dispatch_failed",
                extra={
                    "error_code": error.code,
                    "email_type": error.email_type,
                    "request_id": error.request_id,
                    "reason": error.reason,
                },
                exc_info=True,
            )
            return False

        logger.info(
            "notification_dispatched",
            extra={
                "email_type": directive.email_type.value,
                "request_id": str(directive.request_id),
            },
        )
        return True
