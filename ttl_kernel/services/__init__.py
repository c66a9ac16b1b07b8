"""Write services for the TTL kernel."""

from ttl_kernel.services.budget_ledger import BudgetLedger
from ttl_kernel.services.comment_log import CommentLog
from ttl_kernel.services.notification_service import (
    LoggingNotificationDispatcher,
    NotificationService,
)
from ttl_kernel.services.request_store import RequestStore

__all__ = [
    "BudgetLedger",
    "CommentLog",
    "LoggingNotificationDispatcher",
    "NotificationService",
    "RequestStore",
]
