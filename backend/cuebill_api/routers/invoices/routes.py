"""
Invoices router.
Invoices are created by closing a session; here they can be read and their
payment status moved forward.
"""

from fastapi import APIRouter, Depends

from shared.config.constants import Capabilities
from shared.security.auth import ActorContext, require_capability
from shared.utils.schemas import ErrorResponse, InvoiceOutput, UpdateInvoicePaymentRequest
from cuebill_api.core.dependencies import get_invoice_service
from cuebill_api.services.domain import InvoiceService


router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)

manage_invoices = require_capability(Capabilities.MANAGE_INVOICES)


@router.get("/{invoice_id}", response_model=InvoiceOutput)
def get_invoice(
    invoice_id: int,
    actor: ActorContext = Depends(manage_invoices),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceOutput:
    return InvoiceOutput.model_validate(service.get_invoice(invoice_id, actor.organization_id))


@router.patch("/{invoice_id}/payment-status", response_model=InvoiceOutput)
def update_invoice_payment_status(
    invoice_id: int,
    body: UpdateInvoicePaymentRequest,
    actor: ActorContext = Depends(manage_invoices),
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceOutput:
    """
    Move the invoice to a new payment status.

    Allowed: pending -> paid | partial, partial -> paid, paid -> refunded.
    """
    service.update_payment_status(invoice_id, actor.organization_id, body.payment_status, actor_id=actor.actor_id)
    return InvoiceOutput.model_validate(service.get_invoice(invoice_id, actor.organization_id))
