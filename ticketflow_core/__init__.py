"""
TicketFlow - anti-scalping event ticket collections.

Key features:
- Bounded-supply ticket collections sold at a fixed face value
- Resale capped at a percentage of face value, with an organizer fee split
- Face-value refunds and per-ticket refunds after event cancellation
- Organizer check-in that locks tickets against resale and refund
- All-or-nothing, non-reentrant operations with post-operation invariant checks
- Registry that validates creation parameters against global policy
"""

__version__ = "1.0.0"
__all__ = [
    "collection",
    "config",
    "errors",
    "events",
    "identity",
    "invariants",
    "logging_config",
    "payments",
    "pricing",
    "registry",
    "storage",
]
