"""
Event Type Constants.

Session lifecycle notifications published on Redis pub/sub.
"""

# =============================================================================
# Session lifecycle events
# Flow: STARTED → (PAUSED ⇄ RESUMED)* → CLOSED | CANCELLED
# =============================================================================

SESSION_STARTED = "SESSION_STARTED"
SESSION_PAUSED = "SESSION_PAUSED"
SESSION_RESUMED = "SESSION_RESUMED"
SESSION_ORDER_ADDED = "SESSION_ORDER_ADDED"
SESSION_CLOSED = "SESSION_CLOSED"
SESSION_CANCELLED = "SESSION_CANCELLED"

# =============================================================================
# Invoice events
# =============================================================================

INVOICE_PAYMENT_UPDATED = "INVOICE_PAYMENT_UPDATED"

# Redis pub/sub messages above this size are rejected before publishing
MAX_EVENT_SIZE = 64 * 1024
