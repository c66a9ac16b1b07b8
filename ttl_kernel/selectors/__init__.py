"""Read-only selectors for the TTL kernel."""

from ttl_kernel.selectors.budget_selector import BudgetSelector
from ttl_kernel.selectors.request_selector import RequestSelector

__all__ = ["BudgetSelector", "RequestSelector"]
