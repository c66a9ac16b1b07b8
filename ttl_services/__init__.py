"""
Module: ttl_services
Responsibility:
    Orchestration layer.  Owns transaction boundaries: each public call is
    one unit of work that commits on success and rolls back on failure.

Architecture position:
    Services -- may import ttl_engines, ttl_kernel and ttl_config.

Usage:
    from ttl_services.workflow_executor import WorkflowExecutor
    from ttl_services.request_items import RequestItemService
"""

from ttl_services.request_items import RequestItemService
from ttl_services.workflow_executor import WorkflowExecutor

__all__ = ["RequestItemService", "WorkflowExecutor"]
