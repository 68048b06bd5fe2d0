"""
Billing Calculator.

Pure functions: no database, no clock. Given timestamps, the excluded
(paused) duration and a pricing snapshot they produce amounts in cents.
Used at close time and by the read-only live estimate, so both always
agree.

Rules:
- billable minutes = ceil((end - start - excluded) / 1 minute), never < 0
- fixed:                  fixed amount, whatever the duration
- per_minute, unlimited:  rate * minutes
- per_minute, capped:     rate * min(minutes, cap)
- tax = subtotal * tax_rate rounded half-up to the cent
- total = subtotal + tax - discount
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from shared.config.constants import PricingKind

US_PER_MS = 1_000
US_PER_MINUTE = 60_000_000
_ONE_US = timedelta(microseconds=1)
_ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class PricingSnapshot:
    """Numeric pricing parameters captured onto a session at start."""

    kind: str
    fixed_amount_cents: int | None = None
    rate_per_minute_cents: int | None = None
    cap_minutes: int | None = None
    unlimited_time: bool = False

    @property
    def is_capped(self) -> bool:
        return self.kind == PricingKind.PER_MINUTE and not self.unlimited_time


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class CostEstimate:
    """Snapshot of what an open session would cost if closed at ``as_of``."""

    as_of: datetime
    elapsed_ms: int
    excluded_duration_ms: int
    billable_minutes: int
    occupancy_amount_cents: int
    consumable_subtotal_cents: int
    total_amount_cents: int
    tax_cents: int
    total_with_tax_cents: int
    max_occupancy_cents: int | None
    remaining_minutes: int | None


# =============================================================================
# Durations
# =============================================================================


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds from start to end, never negative."""
    return max((end - start) // _ONE_MS, 0)


def paused_ms(paused_at: datetime, resumed_at: datetime) -> int:
    """
    Length of one pause in milliseconds, rounded up so no fraction of a
    paused millisecond is ever billed.
    """
    pause_us = max((resumed_at - paused_at) // _ONE_US, 0)
    return -(-pause_us // US_PER_MS)


def billable_minutes(start: datetime, end: datetime, excluded_ms: int) -> int:
    """
    Billable minutes between start and end, paused time removed.

    Partial minutes are rounded up: 61 seconds of play is 2 minutes.
    """
    billable_us = (end - start) // _ONE_US - excluded_ms * US_PER_MS
    if billable_us <= 0:
        return 0
    return -(-billable_us // US_PER_MINUTE)


# =============================================================================
# Amounts
# =============================================================================


def occupancy_cost(policy: PricingSnapshot, minutes: int) -> int:
    """Occupancy charge in cents for the given billable minutes."""
    if minutes < 0:
        raise ValueError("Billable minutes cannot be negative")

    if policy.kind == PricingKind.FIXED:
        if policy.fixed_amount_cents is None:
            raise ValueError("Fixed pricing without an amount")
        return policy.fixed_amount_cents

    if policy.kind != PricingKind.PER_MINUTE:
        raise ValueError(f"Unknown pricing kind: {policy.kind}")
    if policy.rate_per_minute_cents is None:
        raise ValueError("Per-minute pricing without a rate")

    if policy.unlimited_time:
        return policy.rate_per_minute_cents * minutes

    if policy.cap_minutes is None:
        raise ValueError("Capped per-minute pricing without a cap")
    return policy.rate_per_minute_cents * min(minutes, policy.cap_minutes)


def max_occupancy_cost(policy: PricingSnapshot) -> int | None:
    """Highest occupancy charge the policy can produce; None if unbounded."""
    if policy.kind == PricingKind.FIXED:
        return policy.fixed_amount_cents
    if policy.unlimited_time:
        return None
    return occupancy_cost(policy, policy.cap_minutes or 0)


def remaining_minutes(policy: PricingSnapshot, minutes: int) -> int | None:
    """Minutes left before the cap stops billing; None when not capped."""
    if not policy.is_capped or policy.cap_minutes is None:
        return None
    return max(policy.cap_minutes - minutes, 0)


def compute_tax(subtotal_cents: int, tax_rate: Decimal) -> int:
    """Tax in cents, rounded half-up."""
    return int((Decimal(subtotal_cents) * tax_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_invoice_totals(
    occupancy_cents: int,
    consumable_subtotal_cents: int,
    tax_rate: Decimal,
    discount_cents: int = 0,
) -> InvoiceTotals:
    """
    Merge occupancy and consumables into invoice totals.

    Raises:
        ValueError: If the discount is negative or larger than subtotal + tax.
    """
    subtotal = occupancy_cents + consumable_subtotal_cents
    tax = compute_tax(subtotal, tax_rate)
    if discount_cents < 0 or discount_cents > subtotal + tax:
        raise ValueError(f"Discount {discount_cents} outside 0..{subtotal + tax}")
    return InvoiceTotals(
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount_cents,
        total_cents=subtotal + tax - discount_cents,
    )


# =============================================================================
# Live estimate
# =============================================================================


def estimate(
    policy: PricingSnapshot,
    start: datetime,
    now: datetime,
    excluded_ms: int,
    consumable_subtotal_cents: int,
    tax_rate: Decimal,
    paused_at: datetime | None = None,
) -> CostEstimate:
    """
    What the session would cost if closed at ``now``.

    When the session is paused the pause in progress (now - paused_at) is
    excluded too, so the figure is frozen while paused and matches close.
    """
    excluded = excluded_ms
    if paused_at is not None:
        excluded += paused_ms(paused_at, now)

    minutes = billable_minutes(start, now, excluded)
    occupancy = occupancy_cost(policy, minutes)
    total = occupancy + consumable_subtotal_cents
    tax = compute_tax(total, tax_rate)

    return CostEstimate(
        as_of=now,
        elapsed_ms=elapsed_ms(start, now),
        excluded_duration_ms=excluded,
        billable_minutes=minutes,
        occupancy_amount_cents=occupancy,
        consumable_subtotal_cents=consumable_subtotal_cents,
        total_amount_cents=total,
        tax_cents=tax,
        total_with_tax_cents=total + tax,
        max_occupancy_cents=max_occupancy_cost(policy),
        remaining_minutes=remaining_minutes(policy, minutes),
    )
