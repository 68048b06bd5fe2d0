"""
Shared Pydantic schemas used across the application.

Money is always integer cents. Timestamps are timezone-aware UTC.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

SessionStatus = Literal["active", "paused", "completed", "cancelled"]
TableStatus = Literal["available", "occupied", "maintenance", "reserved"]
PricingKind = Literal["fixed", "per_minute"]
SessionPaymentStatus = Literal["pending", "paid", "partial"]
InvoicePaymentStatus = Literal["pending", "paid", "partial", "refunded"]
PaymentMethod = Literal["cash", "card", "upi", "bank_transfer"]
InvoiceItemType = Literal["occupancy", "consumable"]


# =============================================================================
# Session Schemas
# =============================================================================


class StartSessionRequest(BaseModel):
    """Request to open a session on a table. Customer XOR guest."""

    table_id: int = Field(gt=0)
    service_type_id: int = Field(gt=0)
    customer_id: int | None = Field(default=None, gt=0)
    guest_name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME_LENGTH)
    guest_phone: str | None = Field(default=None, max_length=Limits.MAX_PHONE_LENGTH)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)

    @model_validator(mode="after")
    def _customer_xor_guest(self) -> "StartSessionRequest":
        if (self.customer_id is None) == (self.guest_name is None):
            raise ValueError("Provide either customer_id or guest_name, not both")
        if self.guest_phone and self.guest_name is None:
            raise ValueError("guest_phone requires guest_name")
        return self


class AttachOrderRequest(BaseModel):
    """Request to add a consumable order to an active session."""

    item_id: int = Field(gt=0)
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class CloseSessionRequest(BaseModel):
    """Request to end a session and settle it."""

    payment_method: PaymentMethod = "cash"
    create_invoice: bool = True
    discount_cents: int = Field(default=0, ge=0)
    settle_now: bool = False  # Invoice is recorded as already paid
    notes: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class CancelSessionRequest(BaseModel):
    """Request to void a session without billing."""

    reason: str | None = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class SessionOutput(BaseModel):
    """A play session as seen by staff."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    organization_id: int
    table_id: int
    service_type_id: int
    customer_id: int | None = None
    guest_name: str | None = None
    guest_phone: str | None = None
    status: SessionStatus
    start_time: datetime
    paused_at: datetime | None = None
    excluded_duration_ms: int
    pause_count: int
    end_time: datetime | None = None
    billable_minutes: int | None = None
    pricing_kind: PricingKind
    fixed_amount_cents: int | None = None
    rate_per_minute_cents: int | None = None
    cap_minutes: int | None = None
    unlimited_time: bool
    occupancy_amount_cents: int
    consumable_subtotal_cents: int
    total_amount_cents: int
    payment_status: SessionPaymentStatus
    notes: str | None = None
    cancel_reason: str | None = None


class SessionOrderOutput(BaseModel):
    """A consumable order line attached to a session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    item_id: int
    item_name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    ordered_at: datetime
    ordered_by_id: int | None = None
    notes: str | None = None


class AttachOrderResponse(BaseModel):
    """Response after attaching an order: the new line and the running totals."""

    order: SessionOrderOutput
    consumable_subtotal_cents: int
    total_amount_cents: int
    remaining_stock: int


class LiveEstimateOutput(BaseModel):
    """Current cost of an open session. Informational, nothing is persisted."""

    session_id: int
    status: SessionStatus
    as_of: datetime
    elapsed_ms: int
    excluded_duration_ms: int
    billable_minutes: int
    occupancy_amount_cents: int
    consumable_subtotal_cents: int
    total_amount_cents: int
    tax_cents: int
    total_with_tax_cents: int
    max_occupancy_cents: int | None = None  # None when time is unlimited
    remaining_minutes: int | None = None  # Minutes until the cap


# =============================================================================
# Invoice Schemas
# =============================================================================


class InvoiceItemOutput(BaseModel):
    """Single invoice line."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    item_type: InvoiceItemType
    reference_id: int | None = None
    description: str
    quantity: int
    unit_price_cents: int
    total_cents: int


class InvoiceOutput(BaseModel):
    """Invoice with its line items."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    organization_id: int
    session_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    subtotal_cents: int
    tax_rate: Decimal
    tax_cents: int
    discount_cents: int
    total_cents: int
    payment_method: PaymentMethod
    payment_status: InvoicePaymentStatus
    paid_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    items: list[InvoiceItemOutput]


class CloseSessionResponse(BaseModel):
    """Response after closing a session."""

    session: SessionOutput
    invoice: InvoiceOutput | None = None


class UpdateInvoicePaymentRequest(BaseModel):
    """Request to move an invoice to a new payment status."""

    payment_status: InvoicePaymentStatus


# =============================================================================
# Misc
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    error_kind: str
    retryable: bool = False
