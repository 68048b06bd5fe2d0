"""
Pricing Domain Service.

Resolves the single active pricing policy for a (table, service type) pair
and hands back an immutable snapshot of its numbers. Read-only.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import PricingKind
from shared.config.logging import get_logger
from shared.utils.exceptions import PricingNotConfiguredError
from cuebill_api.models import PricingPolicy
from cuebill_api.services.billing.calculator import PricingSnapshot

logger = get_logger(__name__)


def policy_problem(snapshot: PricingSnapshot) -> str | None:
    """Why a policy cannot be used for billing, or None if it can."""
    if snapshot.kind == PricingKind.FIXED:
        if snapshot.fixed_amount_cents is None:
            return "fixed policy has no amount"
        return None
    if snapshot.kind == PricingKind.PER_MINUTE:
        if snapshot.rate_per_minute_cents is None:
            return "per-minute policy has no rate"
        if not snapshot.unlimited_time and snapshot.cap_minutes is None:
            return "capped per-minute policy has no cap"
        return None
    return f"unknown pricing kind '{snapshot.kind}'"


class PricingService:
    """Domain service for pricing lookups."""

    def __init__(self, db: Session):
        self._db = db

    def get_active_policy(self, table_id: int, service_type_id: int) -> PricingPolicy | None:
        return self._db.scalar(
            select(PricingPolicy).where(
                PricingPolicy.table_id == table_id,
                PricingPolicy.service_type_id == service_type_id,
                PricingPolicy.is_active.is_(True),
            )
        )

    def resolve(self, table_id: int, service_type_id: int) -> PricingSnapshot:
        """
        Return the pricing snapshot to bill a new session with.

        Raises:
            PricingNotConfiguredError: No active policy, or the active policy
                contradicts its own kind.
        """
        policy = self.get_active_policy(table_id, service_type_id)
        if policy is None:
            raise PricingNotConfiguredError(table_id, service_type_id)

        snapshot = PricingSnapshot(
            kind=policy.kind,
            fixed_amount_cents=policy.fixed_amount_cents,
            rate_per_minute_cents=policy.rate_per_minute_cents,
            cap_minutes=policy.cap_minutes,
            unlimited_time=policy.unlimited_time,
        )
        problem = policy_problem(snapshot)
        if problem:
            raise PricingNotConfiguredError(table_id, service_type_id, reason=problem, policy_id=policy.id)

        logger.debug("Pricing resolved", table_id=table_id, service_type_id=service_type_id, policy_id=policy.id)
        return snapshot
