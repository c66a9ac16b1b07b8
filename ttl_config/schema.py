"""
WorkflowConfig schema.

The runtime artifact produced from the YAML source by the loader.  Frozen;
services receive it by injection and never read YAML themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

DEFAULT_CEO_APPROVAL_THRESHOLD = Decimal("5000")


@dataclass(frozen=True)
class WorkflowConfig:
    """Tunable settings of the request workflow."""

    config_id: str = "ttl-default"
    version: int = 1
    currency: str = "EUR"
    ceo_approval_threshold: Decimal = DEFAULT_CEO_APPROVAL_THRESHOLD
    budget_conflict_retries: int = 3
    notifications_enabled: bool = True
    checksum: str | None = None

    def __post_init__(self) -> None:
        if self.ceo_approval_threshold < 0:
            raise ValueError("ceo_approval_threshold cannot be negative")
        if self.budget_conflict_retries < 1:
            raise ValueError("budget_conflict_retries must be at least 1")
        if len(self.currency) != 3 or not self.currency.isupper():
            raise ValueError(f"currency must be an ISO 4217 code, got {self.currency!r}")

    def needs_ceo_approval(self, total_cost: Decimal) -> bool:
        """Strictly greater than the threshold; equality does not."""
        return total_cost > self.ceo_approval_threshold
