"""
Module: ttl_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for ``ttl_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ttl_kernel domain types, exceptions and logging.
    MUST NOT import ttl_services or ttl_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by the caller.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from ttl_engines.workflow_engine import WorkflowEngine, WorkflowContext
    from ttl_engines.item_costs import calculate_license_cost
"""

from ttl_engines.item_costs import calculate_license_cost, normalize_license_users
from ttl_engines.tracer import traced_engine
from ttl_engines.workflow_engine import (
    WorkflowContext,
    WorkflowEngine,
    WorkflowOutcome,
)

__all__ = [
    "WorkflowContext",
    "WorkflowEngine",
    "WorkflowOutcome",
    "calculate_license_cost",
    "normalize_license_users",
    "traced_engine",
]
