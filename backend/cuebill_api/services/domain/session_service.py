"""
Session Domain Service.

Owns the lifecycle of a play session:

    start -> active <-> paused -> completed
                    \\-----------> cancelled

Every operation is one transaction. Operations that change an existing
session (pause, resume, attach_order, close, cancel) first take the
per-session lock, then lock the session row, so attach and close can never
interleave. Running totals and stock are changed by the store
(``x = x + delta``), never read-modified-written by Python.

The service is role-agnostic: capability checks happen at the API boundary
and only the actor id reaches this layer, for the audit columns.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.config.constants import (
    PaymentMethod,
    PaymentStatus,
    SessionStatus,
    SESSION_TRANSITIONS,
    TableStatus,
)
from shared.config.logging import mask_phone, session_logger as logger
from shared.infrastructure.db import transaction_scope
from shared.infrastructure.events import (
    Event,
    EventPublisher,
    SessionEventPublisher,
    SESSION_STARTED,
    SESSION_PAUSED,
    SESSION_RESUMED,
    SESSION_ORDER_ADDED,
    SESSION_CLOSED,
    SESSION_CANCELLED,
)
from shared.utils.exceptions import (
    AlreadyClosedError,
    InsufficientStockError,
    InvalidTransitionError,
    InvoiceCreationError,
    ItemUnavailableError,
    NotFoundError,
    ResourceBusyError,
    SessionNotFoundError,
    ValidationError,
)
from cuebill_api.models import (
    ConsumableItem,
    Invoice,
    PlaySession,
    ServiceType,
    SessionOrder,
    VenueTable,
    utc_now,
)
from cuebill_api.services.billing import calculator
from cuebill_api.services.billing.calculator import CostEstimate, PricingSnapshot
from cuebill_api.services.billing.invoice_assembler import InvoiceAssembler
from cuebill_api.services.domain.pricing_service import PricingService
from cuebill_api.services.locks import KeyedLockRegistry, session_lock_key, session_locks
from cuebill_api.services.sequence import SequenceGenerator


Clock = Callable[[], datetime]


@dataclass
class OrderAttachment:
    """Result of attach_order: the new line and the session's running totals."""

    order: SessionOrder
    session: PlaySession
    remaining_stock: int


@dataclass
class ClosedSession:
    session: PlaySession
    invoice: Invoice | None


def snapshot_of(session: PlaySession) -> PricingSnapshot:
    """Pricing captured on the session at start."""
    return PricingSnapshot(
        kind=session.pricing_kind,
        fixed_amount_cents=session.fixed_amount_cents,
        rate_per_minute_cents=session.rate_per_minute_cents,
        cap_minutes=session.cap_minutes,
        unlimited_time=session.unlimited_time,
    )


def excluded_ms_at(session: PlaySession, now: datetime) -> int:
    """Paused time up to ``now``, including the pause in progress."""
    excluded = session.excluded_duration_ms
    if session.status == SessionStatus.PAUSED and session.paused_at is not None:
        excluded += calculator.paused_ms(session.paused_at, now)
    return excluded


class SessionService:
    """
    Domain service for play sessions.

    Args:
        db: SQLAlchemy session; one service call is one transaction on it.
        clock: Source of "now" (UTC, timezone-aware).
        publisher: Receives lifecycle events after commit.
        locks: Per-session lock registry.
        assembler_factory: Builds the invoice assembler used at close.
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = utc_now,
        publisher: EventPublisher | None = None,
        locks: KeyedLockRegistry | None = None,
        tax_rate: Decimal | None = None,
        assembler_factory: Callable[..., InvoiceAssembler] = InvoiceAssembler,
    ):
        self._db = db
        self._clock = clock
        self._publisher = publisher if publisher is not None else SessionEventPublisher()
        self._locks = locks if locks is not None else session_locks
        self._tax_rate = settings.tax_rate if tax_rate is None else tax_rate
        self._assembler_factory = assembler_factory

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, session_id: int, organization_id: int) -> PlaySession:
        session = self._db.scalar(
            select(PlaySession).where(
                PlaySession.id == session_id,
                PlaySession.organization_id == organization_id,
            )
        )
        if session is None:
            raise SessionNotFoundError(session_id, organization_id=organization_id)
        return session

    def list_sessions(
        self,
        organization_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PlaySession]:
        """Sessions of the organization, newest first, optionally by status."""
        stmt = select(PlaySession).where(PlaySession.organization_id == organization_id)
        if status is not None:
            if status not in SessionStatus.ALL:
                raise ValidationError(f"Unknown session status '{status}'", status=status)
            stmt = stmt.where(PlaySession.status == status)
        stmt = stmt.order_by(PlaySession.start_time.desc(), PlaySession.id.desc()).limit(limit).offset(offset)
        return list(self._db.scalars(stmt))

    def list_orders(self, session_id: int, organization_id: int) -> list[SessionOrder]:
        session = self.get_session(session_id, organization_id)
        return list(
            self._db.scalars(
                select(SessionOrder).where(SessionOrder.session_id == session.id).order_by(SessionOrder.id)
            )
        )

    def estimate(self, session_id: int, organization_id: int) -> CostEstimate:
        """
        Live cost of an open session as if it were closed now.

        Read-only: nothing is written and no lock is taken.
        """
        return self.estimate_for(self.get_session(session_id, organization_id))

    def estimate_for(self, session: PlaySession) -> CostEstimate:
        """Live cost computed from an already loaded row, so status and figures agree."""
        if session.status in SessionStatus.TERMINAL:
            raise AlreadyClosedError(session.id, session.status)

        now = self._clock()
        return calculator.estimate(
            snapshot_of(session),
            start=session.start_time,
            now=now,
            excluded_ms=session.excluded_duration_ms,
            consumable_subtotal_cents=session.consumable_subtotal_cents,
            tax_rate=self._tax_rate,
            paused_at=session.paused_at if session.status == SessionStatus.PAUSED else None,
        )

    # =========================================================================
    # Start
    # =========================================================================

    def start_session(
        self,
        organization_id: int,
        table_id: int,
        service_type_id: int,
        *,
        customer_id: int | None = None,
        guest_name: str | None = None,
        guest_phone: str | None = None,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> PlaySession:
        """
        Open a session on an available table.

        Raises:
            ValidationError: Neither or both of customer_id / guest_name.
            NotFoundError: Table or service type not in this organization.
            ResourceBusyError: Table is not available.
            PricingNotConfiguredError: No usable active pricing.
        """
        if guest_name is not None and not guest_name.strip():
            raise ValidationError("Guest name cannot be blank", customer_id=customer_id)
        if (customer_id is None) == (guest_name is None):
            raise ValidationError(
                "Provide either customer_id or guest_name, not both",
                customer_id=customer_id,
            )

        with transaction_scope(self._db, "start_session"):
            table = self._db.scalar(
                select(VenueTable).where(
                    VenueTable.id == table_id,
                    VenueTable.organization_id == organization_id,
                )
            )
            if table is None:
                raise NotFoundError("Table", table_id, organization_id=organization_id)

            service_type = self._db.scalar(
                select(ServiceType).where(
                    ServiceType.id == service_type_id,
                    ServiceType.organization_id == organization_id,
                )
            )
            if service_type is None:
                raise NotFoundError("Service type", service_type_id, organization_id=organization_id)

            if table.status != TableStatus.AVAILABLE:
                raise ResourceBusyError(table.id, table.status)

            pricing = PricingService(self._db).resolve(table.id, service_type.id)

            # Check-and-set in one statement: a concurrent start sees 0 rows
            claimed = self._db.execute(
                update(VenueTable)
                .where(
                    VenueTable.id == table.id,
                    VenueTable.status == TableStatus.AVAILABLE,
                )
                .values(status=TableStatus.OCCUPIED)
            )
            if claimed.rowcount == 0:
                raise ResourceBusyError(table.id)

            now = self._clock()
            code = SequenceGenerator(self._db).next_session_code(organization_id, now)

            session = PlaySession(
                code=code,
                organization_id=organization_id,
                table_id=table.id,
                service_type_id=service_type.id,
                customer_id=customer_id,
                guest_name=guest_name,
                guest_phone=guest_phone,
                status=SessionStatus.ACTIVE,
                start_time=now,
                excluded_duration_ms=0,
                pause_count=0,
                pricing_kind=pricing.kind,
                fixed_amount_cents=pricing.fixed_amount_cents,
                rate_per_minute_cents=pricing.rate_per_minute_cents,
                cap_minutes=pricing.cap_minutes,
                unlimited_time=pricing.unlimited_time,
                occupancy_amount_cents=0,
                consumable_subtotal_cents=0,
                total_amount_cents=0,
                payment_status=PaymentStatus.PENDING,
                notes=notes,
                opened_by_id=actor_id,
            )
            try:
                with self._db.begin_nested():
                    self._db.add(session)
            except IntegrityError as exc:
                if self._has_open_session(table.id):
                    raise ResourceBusyError(table.id) from exc
                raise

        logger.info(
            "Session started",
            session_id=session.id,
            code=session.code,
            table_id=table.id,
            pricing_kind=pricing.kind,
            guest_phone=mask_phone(guest_phone) if guest_phone else None,
        )
        self._publish(SESSION_STARTED, session, actor_id, code=session.code)
        return session

    # =========================================================================
    # Pause / Resume
    # =========================================================================

    def pause_session(self, session_id: int, organization_id: int, actor_id: int | None = None) -> PlaySession:
        """Freeze billable time. Only an active session can be paused."""
        with self._locks.hold(session_lock_key(session_id)), transaction_scope(self._db, "pause_session"):
            session = self._get_for_update(session_id, organization_id)
            self._require_transition(session, SessionStatus.PAUSED)

            session.status = SessionStatus.PAUSED
            session.paused_at = self._clock()
            session.pause_count += 1

        logger.info("Session paused", session_id=session.id, pause_count=session.pause_count)
        self._publish(SESSION_PAUSED, session, actor_id, pause_count=session.pause_count)
        return session

    def resume_session(self, session_id: int, organization_id: int, actor_id: int | None = None) -> PlaySession:
        """Unfreeze billable time; the pause just ended is added to the excluded total."""
        with self._locks.hold(session_lock_key(session_id)), transaction_scope(self._db, "resume_session"):
            session = self._get_for_update(session_id, organization_id)
            if session.status != SessionStatus.PAUSED:
                raise InvalidTransitionError("Session", session.status, SessionStatus.ACTIVE, session_id=session.id)

            now = self._clock()
            pause_ms = calculator.paused_ms(session.paused_at, now) if session.paused_at else 0
            session.excluded_duration_ms += pause_ms
            session.paused_at = None
            session.status = SessionStatus.ACTIVE

        logger.info(
            "Session resumed",
            session_id=session.id,
            paused_ms=pause_ms,
            excluded_duration_ms=session.excluded_duration_ms,
        )
        self._publish(SESSION_RESUMED, session, actor_id, excluded_duration_ms=session.excluded_duration_ms)
        return session

    # =========================================================================
    # Consumable orders
    # =========================================================================

    def attach_order(
        self,
        session_id: int,
        organization_id: int,
        item_id: int,
        quantity: int,
        *,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> OrderAttachment:
        """
        Add a consumable order to an active session.

        Stock decrement, order line and running totals commit together or
        not at all.

        Raises:
            ValidationError: quantity < 1.
            InvalidTransitionError: Session is not active.
            ItemUnavailableError / InsufficientStockError: Catalog refused.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", quantity=quantity)

        with self._locks.hold(session_lock_key(session_id)), transaction_scope(self._db, "attach_order"):
            session = self._get_for_update(session_id, organization_id)
            self._require_active_for_order(session)

            item = self._db.scalar(
                select(ConsumableItem).where(
                    ConsumableItem.id == item_id,
                    ConsumableItem.organization_id == organization_id,
                )
            )
            if item is None:
                raise NotFoundError("Consumable item", item_id, organization_id=organization_id)
            if not item.is_available:
                raise ItemUnavailableError(item.id)

            decremented = self._db.execute(
                update(ConsumableItem)
                .where(
                    ConsumableItem.id == item.id,
                    ConsumableItem.is_available.is_(True),
                    ConsumableItem.stock_quantity >= quantity,
                )
                .values(stock_quantity=ConsumableItem.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if decremented.rowcount == 0:
                self._db.refresh(item)
                if not item.is_available:
                    raise ItemUnavailableError(item.id)
                raise InsufficientStockError(item.id, quantity, item.stock_quantity)

            line_total = item.price_cents * quantity
            order = SessionOrder(
                session_id=session.id,
                item_id=item.id,
                item_name=item.name,
                quantity=quantity,
                unit_price_cents=item.price_cents,
                line_total_cents=line_total,
                ordered_at=self._clock(),
                ordered_by_id=actor_id,
                notes=notes,
            )
            self._db.add(order)

            added = self._db.execute(
                update(PlaySession)
                .where(
                    PlaySession.id == session.id,
                    PlaySession.status == SessionStatus.ACTIVE,
                )
                .values(
                    consumable_subtotal_cents=PlaySession.consumable_subtotal_cents + line_total,
                    total_amount_cents=PlaySession.total_amount_cents + line_total,
                )
                .execution_options(synchronize_session=False)
            )
            if added.rowcount == 0:
                raise InvalidTransitionError("Session", session.status, "order", session_id=session.id)

            self._db.flush()
            self._db.refresh(session)
            self._db.refresh(item)
            remaining = item.stock_quantity

        logger.info(
            "Order attached",
            session_id=session.id,
            order_id=order.id,
            item_id=order.item_id,
            quantity=quantity,
            line_total_cents=line_total,
            consumable_subtotal_cents=session.consumable_subtotal_cents,
        )
        self._publish(
            SESSION_ORDER_ADDED,
            session,
            actor_id,
            order_id=order.id,
            item_id=order.item_id,
            quantity=quantity,
            line_total_cents=line_total,
            consumable_subtotal_cents=session.consumable_subtotal_cents,
        )
        return OrderAttachment(order=order, session=session, remaining_stock=remaining)

    # =========================================================================
    # Close / Cancel
    # =========================================================================

    def close_session(
        self,
        session_id: int,
        organization_id: int,
        *,
        payment_method: str = PaymentMethod.CASH,
        create_invoice: bool = True,
        discount_cents: int = 0,
        settle_now: bool = False,
        notes: str | None = None,
        actor_id: int | None = None,
    ) -> ClosedSession:
        """
        End the session, bill it and (optionally) invoice it.

        Session, table release and invoice are one transaction: if the
        invoice cannot be created nothing changes and InvoiceCreationError is
        raised. Without an invoice the session is recorded as settled.

        Raises:
            ValidationError: Bad payment method or discount.
            AlreadyClosedError: Session is completed or cancelled.
            InvoiceCreationError: Invoice failed; session left open.
        """
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError(f"Unknown payment method '{payment_method}'", payment_method=payment_method)
        if discount_cents < 0:
            raise ValidationError("Discount cannot be negative", discount_cents=discount_cents)
        if discount_cents and not create_invoice:
            raise ValidationError("A discount requires an invoice", discount_cents=discount_cents)

        invoice: Invoice | None = None
        with self._locks.hold(session_lock_key(session_id)), transaction_scope(self._db, "close_session"):
            session = self._get_for_update(session_id, organization_id)
            if session.status in SessionStatus.TERMINAL:
                raise AlreadyClosedError(session.id, session.status)

            now = self._clock()
            excluded = excluded_ms_at(session, now)
            minutes = calculator.billable_minutes(session.start_time, now, excluded)
            occupancy = calculator.occupancy_cost(snapshot_of(session), minutes)

            if create_invoice:
                subtotal = occupancy + session.consumable_subtotal_cents
                if discount_cents > subtotal + calculator.compute_tax(subtotal, self._tax_rate):
                    raise ValidationError(
                        "Discount exceeds invoice total",
                        session_id=session.id,
                        discount_cents=discount_cents,
                    )

            session.excluded_duration_ms = excluded
            session.paused_at = None
            session.end_time = now
            session.billable_minutes = minutes
            session.occupancy_amount_cents = occupancy
            session.total_amount_cents = occupancy + session.consumable_subtotal_cents
            session.status = SessionStatus.COMPLETED
            session.closed_by_id = actor_id
            if notes:
                session.notes = notes

            self._release_table(session.table_id)

            if create_invoice:
                invoice = self._create_invoice(
                    session,
                    payment_method=payment_method,
                    discount_cents=discount_cents,
                    settle_now=settle_now,
                    issued_at=now,
                    actor_id=actor_id,
                    notes=notes,
                )
                session.payment_status = invoice.payment_status
            else:
                session.payment_status = PaymentStatus.PAID

        logger.info(
            "Session closed",
            session_id=session.id,
            code=session.code,
            billable_minutes=session.billable_minutes,
            occupancy_amount_cents=session.occupancy_amount_cents,
            consumable_subtotal_cents=session.consumable_subtotal_cents,
            total_amount_cents=session.total_amount_cents,
            invoice_number=invoice.number if invoice else None,
        )
        self._publish(
            SESSION_CLOSED,
            session,
            actor_id,
            total_amount_cents=session.total_amount_cents,
            invoice_number=invoice.number if invoice else None,
        )
        return ClosedSession(session=session, invoice=invoice)

    def cancel_session(
        self,
        session_id: int,
        organization_id: int,
        reason: str | None = None,
        actor_id: int | None = None,
    ) -> PlaySession:
        """Void an open session: release the table, bill nothing."""
        with self._locks.hold(session_lock_key(session_id)), transaction_scope(self._db, "cancel_session"):
            session = self._get_for_update(session_id, organization_id)
            if session.status in SessionStatus.TERMINAL:
                raise AlreadyClosedError(session.id, session.status)

            now = self._clock()
            session.excluded_duration_ms = excluded_ms_at(session, now)
            session.paused_at = None
            session.end_time = now
            session.status = SessionStatus.CANCELLED
            session.cancel_reason = reason
            session.closed_by_id = actor_id

            self._release_table(session.table_id)

        logger.info("Session cancelled", session_id=session.id, code=session.code, reason=reason)
        self._publish(SESSION_CANCELLED, session, actor_id, reason=reason)
        return session

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_for_update(self, session_id: int, organization_id: int) -> PlaySession:
        """Load the session with its row locked and attributes refreshed."""
        session = self._db.scalar(
            select(PlaySession)
            .where(
                PlaySession.id == session_id,
                PlaySession.organization_id == organization_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if session is None:
            raise SessionNotFoundError(session_id, organization_id=organization_id)
        return session

    def _has_open_session(self, table_id: int) -> bool:
        return (
            self._db.scalar(
                select(PlaySession.id).where(
                    PlaySession.table_id == table_id,
                    PlaySession.status.in_(SessionStatus.OPEN),
                )
            )
            is not None
        )

    @staticmethod
    def _require_transition(session: PlaySession, target: str) -> None:
        if target not in SESSION_TRANSITIONS.get(session.status, []):
            raise InvalidTransitionError("Session", session.status, target, session_id=session.id)

    @staticmethod
    def _require_active_for_order(session: PlaySession) -> None:
        if session.status != SessionStatus.ACTIVE:
            raise InvalidTransitionError(
                "Session",
                session.status,
                "order",
                detail=f"Orders can only be added to an active session (session {session.id} is {session.status})",
                session_id=session.id,
            )

    def _release_table(self, table_id: int) -> None:
        # Admin may have moved the table to maintenance meanwhile; leave that alone
        self._db.execute(
            update(VenueTable)
            .where(VenueTable.id == table_id, VenueTable.status == TableStatus.OCCUPIED)
            .values(status=TableStatus.AVAILABLE)
        )

    def _create_invoice(
        self,
        session: PlaySession,
        *,
        payment_method: str,
        discount_cents: int,
        settle_now: bool,
        issued_at: datetime,
        actor_id: int | None,
        notes: str | None,
    ) -> Invoice:
        """
        Run the invoice assembler inside the close transaction.

        Store outages keep their retryable type; any other failure becomes
        InvoiceCreationError. Either way the caller's transaction rolls back.
        """
        orders = list(
            self._db.scalars(
                select(SessionOrder).where(SessionOrder.session_id == session.id).order_by(SessionOrder.id)
            )
        )
        table_label = self._db.scalar(select(VenueTable.label).where(VenueTable.id == session.table_id))
        service_name = self._db.scalar(select(ServiceType.name).where(ServiceType.id == session.service_type_id))

        assembler = self._assembler_factory(self._db, tax_rate=self._tax_rate)
        try:
            return assembler.assemble(
                session,
                orders,
                table_label=table_label or str(session.table_id),
                service_name=service_name or "Table rental",
                payment_method=payment_method,
                issued_at=issued_at,
                discount_cents=discount_cents,
                settle_now=settle_now,
                issued_by_id=actor_id,
                notes=notes,
            )
        except (OperationalError, PoolTimeoutError):
            raise
        except (SQLAlchemyError, ValueError) as exc:
            raise InvoiceCreationError(session.id, str(exc)) from exc

    def _publish(self, event_type: str, session: PlaySession, actor_id: int | None, **entity) -> None:
        self._publisher.publish(
            Event(
                type=event_type,
                organization_id=session.organization_id,
                session_id=session.id,
                table_id=session.table_id,
                entity={"status": session.status, **entity},
                actor={"user_id": actor_id},
            )
        )
