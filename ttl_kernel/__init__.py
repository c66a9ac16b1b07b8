"""
TTL Kernel - training, travel and licence request approval.

Holds the request state machine's domain types, the budget ledger, the
comment log and their persistence:
- Closed request status set with an explicit transition table
- Role resolution from approval-chain records
- Atomic budget deduct/restore with optimistic version checks
- Append-only comments
- Structured JSON logging
"""

__version__ = "0.1.0"
