"""
Centralized constants for the backend application.
Avoids magic strings for statuses, capabilities and sequence namespaces.

Usage:
    from shared.config.constants import SessionStatus, SESSION_TRANSITIONS

    if SessionStatus.PAUSED in SESSION_TRANSITIONS[session.status]:
        ...
"""

from typing import Final


# =============================================================================
# Capabilities (granted by the identity service, checked at the boundary)
# =============================================================================


class Capabilities:
    """Capability names carried in the actor token."""

    MANAGE_SESSIONS: Final[str] = "sessions:manage"
    MANAGE_CONSUMABLES: Final[str] = "consumables:manage"
    MANAGE_INVOICES: Final[str] = "invoices:manage"

    ALL: Final[frozenset[str]] = frozenset({MANAGE_SESSIONS, MANAGE_CONSUMABLES, MANAGE_INVOICES})


# =============================================================================
# Entity Status Constants
# =============================================================================


class TableStatus:
    """Venue table status constants."""

    AVAILABLE: Final[str] = "available"
    OCCUPIED: Final[str] = "occupied"
    MAINTENANCE: Final[str] = "maintenance"
    RESERVED: Final[str] = "reserved"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED, MAINTENANCE, RESERVED]


class SessionStatus:
    """Play session status constants."""

    ACTIVE: Final[str] = "active"
    PAUSED: Final[str] = "paused"
    COMPLETED: Final[str] = "completed"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [ACTIVE, PAUSED, COMPLETED, CANCELLED]
    OPEN: Final[list[str]] = [ACTIVE, PAUSED]  # Session still holds its table
    TERMINAL: Final[list[str]] = [COMPLETED, CANCELLED]


class PricingKind:
    """Pricing policy kinds."""

    FIXED: Final[str] = "fixed"
    PER_MINUTE: Final[str] = "per_minute"

    ALL: Final[list[str]] = [FIXED, PER_MINUTE]


class PaymentStatus:
    """Payment status shared by sessions and invoices."""

    PENDING: Final[str] = "pending"
    PAID: Final[str] = "paid"
    PARTIAL: Final[str] = "partial"
    REFUNDED: Final[str] = "refunded"  # Invoices only

    SESSION: Final[list[str]] = [PENDING, PAID, PARTIAL]
    INVOICE: Final[list[str]] = [PENDING, PAID, PARTIAL, REFUNDED]


class PaymentMethod:
    """Accepted payment methods."""

    CASH: Final[str] = "cash"
    CARD: Final[str] = "card"
    UPI: Final[str] = "upi"
    BANK_TRANSFER: Final[str] = "bank_transfer"

    ALL: Final[list[str]] = [CASH, CARD, UPI, BANK_TRANSFER]


class InvoiceItemType:
    """Invoice line item types."""

    OCCUPANCY: Final[str] = "occupancy"
    CONSUMABLE: Final[str] = "consumable"


class SequenceNamespace:
    """Namespaces of the sequence generator."""

    SESSION_CODE: Final[str] = "session_code"
    INVOICE: Final[str] = "invoice"


# =============================================================================
# Status Transitions
# =============================================================================

# Valid session status transitions (from -> [allowed to states])
SESSION_TRANSITIONS: Final[dict[str, list[str]]] = {
    SessionStatus.ACTIVE: [SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.CANCELLED],
    SessionStatus.PAUSED: [SessionStatus.ACTIVE, SessionStatus.COMPLETED, SessionStatus.CANCELLED],
    SessionStatus.COMPLETED: [],  # Terminal state
    SessionStatus.CANCELLED: [],  # Terminal state
}

# Valid invoice payment status transitions. Everything else on an invoice is
# frozen at creation.
INVOICE_PAYMENT_TRANSITIONS: Final[dict[str, list[str]]] = {
    PaymentStatus.PENDING: [PaymentStatus.PAID, PaymentStatus.PARTIAL],
    PaymentStatus.PARTIAL: [PaymentStatus.PAID],
    PaymentStatus.PAID: [PaymentStatus.REFUNDED],
    PaymentStatus.REFUNDED: [],
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits per consumable order line
    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    # Price limits (in cents)
    MAX_PRICE_CENTS: Final[int] = 100_000_00

    # String lengths
    MAX_NAME_LENGTH: Final[int] = 200
    MAX_PHONE_LENGTH: Final[int] = 30
    MAX_NOTES_LENGTH: Final[int] = 500

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


