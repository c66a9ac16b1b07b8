"""ORM models for the TTL kernel."""

from ttl_kernel.models.approver import ApproverModel
from ttl_kernel.models.budget import BudgetModel
from ttl_kernel.models.comment import CommentModel
from ttl_kernel.models.request import RequestItemModel, RequestModel

__all__ = [
    "ApproverModel",
    "BudgetModel",
    "CommentModel",
    "RequestItemModel",
    "RequestModel",
]
