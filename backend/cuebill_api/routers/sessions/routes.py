"""
Sessions router.
Thin controller over SessionService: start, pause/resume, consumable
orders, live estimate, close and cancel.

Capabilities are checked here; the service only receives the actor id and
organization id.
"""

from fastapi import APIRouter, Depends, Query, status

from shared.config.constants import Capabilities
from shared.security.auth import ActorContext, require_capability
from shared.utils.schemas import (
    AttachOrderRequest,
    AttachOrderResponse,
    CancelSessionRequest,
    CloseSessionRequest,
    CloseSessionResponse,
    ErrorResponse,
    InvoiceOutput,
    LiveEstimateOutput,
    SessionOrderOutput,
    SessionOutput,
    SessionStatus,
    StartSessionRequest,
)
from cuebill_api.core.dependencies import Pagination, get_pagination, get_session_service
from cuebill_api.services.domain import SessionService


router = APIRouter(
    prefix="/api/sessions",
    tags=["sessions"],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)

manage_sessions = require_capability(Capabilities.MANAGE_SESSIONS)
manage_consumables = require_capability(Capabilities.MANAGE_CONSUMABLES)


@router.post("", response_model=SessionOutput, status_code=status.HTTP_201_CREATED)
def start_session(
    body: StartSessionRequest,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> SessionOutput:
    """
    Open a session on an available table.

    The active pricing policy is snapshotted onto the session; later price
    changes do not affect it.
    """
    session = service.start_session(
        actor.organization_id,
        body.table_id,
        body.service_type_id,
        customer_id=body.customer_id,
        guest_name=body.guest_name,
        guest_phone=body.guest_phone,
        notes=body.notes,
        actor_id=actor.actor_id,
    )
    return SessionOutput.model_validate(session)


@router.get("", response_model=list[SessionOutput])
def list_sessions(
    status_filter: SessionStatus | None = Query(None, alias="status", description="Filter by session status"),
    pagination: Pagination = Depends(get_pagination),
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> list[SessionOutput]:
    sessions = service.list_sessions(
        actor.organization_id,
        status=status_filter,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return [SessionOutput.model_validate(s) for s in sessions]


@router.get("/{session_id}", response_model=SessionOutput)
def get_session(
    session_id: int,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> SessionOutput:
    return SessionOutput.model_validate(service.get_session(session_id, actor.organization_id))


@router.post("/{session_id}/pause", response_model=SessionOutput)
def pause_session(
    session_id: int,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> SessionOutput:
    session = service.pause_session(session_id, actor.organization_id, actor_id=actor.actor_id)
    return SessionOutput.model_validate(session)


@router.post("/{session_id}/resume", response_model=SessionOutput)
def resume_session(
    session_id: int,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> SessionOutput:
    session = service.resume_session(session_id, actor.organization_id, actor_id=actor.actor_id)
    return SessionOutput.model_validate(session)


@router.get("/{session_id}/estimate", response_model=LiveEstimateOutput)
def get_live_estimate(
    session_id: int,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> LiveEstimateOutput:
    """Cost if the session were closed now. Nothing is persisted."""
    session = service.get_session(session_id, actor.organization_id)
    estimate = service.estimate_for(session)
    return LiveEstimateOutput(
        session_id=session.id,
        status=session.status,
        as_of=estimate.as_of,
        elapsed_ms=estimate.elapsed_ms,
        excluded_duration_ms=estimate.excluded_duration_ms,
        billable_minutes=estimate.billable_minutes,
        occupancy_amount_cents=estimate.occupancy_amount_cents,
        consumable_subtotal_cents=estimate.consumable_subtotal_cents,
        total_amount_cents=estimate.total_amount_cents,
        tax_cents=estimate.tax_cents,
        total_with_tax_cents=estimate.total_with_tax_cents,
        max_occupancy_cents=estimate.max_occupancy_cents,
        remaining_minutes=estimate.remaining_minutes,
    )


@router.post("/{session_id}/orders", response_model=AttachOrderResponse, status_code=status.HTTP_201_CREATED)
def attach_consumable_order(
    session_id: int,
    body: AttachOrderRequest,
    actor: ActorContext = Depends(manage_consumables),
    service: SessionService = Depends(get_session_service),
) -> AttachOrderResponse:
    result = service.attach_order(
        session_id,
        actor.organization_id,
        body.item_id,
        body.quantity,
        notes=body.notes,
        actor_id=actor.actor_id,
    )
    return AttachOrderResponse(
        order=SessionOrderOutput.model_validate(result.order),
        consumable_subtotal_cents=result.session.consumable_subtotal_cents,
        total_amount_cents=result.session.total_amount_cents,
        remaining_stock=result.remaining_stock,
    )


@router.get("/{session_id}/orders", response_model=list[SessionOrderOutput])
def list_session_orders(
    session_id: int,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> list[SessionOrderOutput]:
    orders = service.list_orders(session_id, actor.organization_id)
    return [SessionOrderOutput.model_validate(o) for o in orders]


@router.post("/{session_id}/close", response_model=CloseSessionResponse)
def close_session(
    session_id: int,
    body: CloseSessionRequest | None = None,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> CloseSessionResponse:
    """
    End the session, bill it and optionally invoice it.

    If the invoice cannot be created the session stays open and the error
    kind is ``invoice_failed``.
    """
    body = body or CloseSessionRequest()
    closed = service.close_session(
        session_id,
        actor.organization_id,
        payment_method=body.payment_method,
        create_invoice=body.create_invoice,
        discount_cents=body.discount_cents,
        settle_now=body.settle_now,
        notes=body.notes,
        actor_id=actor.actor_id,
    )
    return CloseSessionResponse(
        session=SessionOutput.model_validate(closed.session),
        invoice=InvoiceOutput.model_validate(closed.invoice) if closed.invoice else None,
    )


@router.post("/{session_id}/cancel", response_model=SessionOutput)
def cancel_session(
    session_id: int,
    body: CancelSessionRequest | None = None,
    actor: ActorContext = Depends(manage_sessions),
    service: SessionService = Depends(get_session_service),
) -> SessionOutput:
    body = body or CancelSessionRequest()
    session = service.cancel_session(session_id, actor.organization_id, reason=body.reason, actor_id=actor.actor_id)
    return SessionOutput.model_validate(session)
