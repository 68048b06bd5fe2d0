"""
Centralized exceptions for consistent error handling.

Every error carries a stable ``error_kind`` string and a ``retryable`` flag
so a caller can tell whether to retry (infrastructure), fix its input
(validation) or refresh its view of the entity (state conflict). The API
renders them as ``{"detail", "error_kind", "retryable"}``.

Usage:
    from shared.utils.exceptions import NotFoundError, ResourceBusyError

    raise NotFoundError("Table", table_id)
    raise ResourceBusyError(table_id, current_status="occupied")
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    error_kind: str = "internal"
    retryable: bool = False

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, error_kind=self.error_kind, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def to_dict(self) -> dict[str, Any]:
        """Response body for this error."""
        return {
            "detail": self.detail,
            "error_kind": self.error_kind,
            "retryable": self.retryable,
        }


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Table", 12)
        raise NotFoundError("Consumable item", item_id, organization_id=org_id)
    """

    error_kind = "not_found"

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class SessionNotFoundError(NotFoundError):
    """Play session not found."""

    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Session", session_id, **log_context)


class InvoiceNotFoundError(NotFoundError):
    """Invoice not found."""

    def __init__(self, invoice_id: int | None = None, **log_context: Any):
        super().__init__("Invoice", invoice_id, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization error (403).

    Usage:
        raise ForbiddenError("close sessions")
    """

    error_kind = "forbidden"

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not allowed to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class MissingCapabilityError(ForbiddenError):
    """Actor token does not grant the capability the operation needs."""

    def __init__(self, capability: str, **log_context: Any):
        super().__init__(
            f"perform this operation (requires capability: {capability})",
            capability=capability,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Raised before any mutation.

    Usage:
        raise ValidationError("Provide either customer_id or guest_name")
        raise ValidationError("Discount exceeds invoice total", discount_cents=500)
    """

    error_kind = "validation"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 409 Conflict Errors (state conflicts and resource exhaustion)
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Invoice already exists for this session")
    """

    error_kind = "conflict"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidTransitionError(ConflictError):
    """Requested status change is not allowed from the current status."""

    error_kind = "invalid_transition"

    def __init__(
        self,
        entity: str,
        from_status: str,
        to_status: str,
        detail: str | None = None,
        **log_context: Any,
    ):
        if detail is None:
            detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(detail, entity=entity, from_status=from_status, to_status=to_status, **log_context)


class AlreadyClosedError(ConflictError):
    """Session is completed or cancelled and can no longer change."""

    error_kind = "already_closed"

    def __init__(self, session_id: int, current_status: str, **log_context: Any):
        detail = f"Session {session_id} is already {current_status}"
        super().__init__(detail, session_id=session_id, current_status=current_status, **log_context)


class ResourceBusyError(ConflictError):
    """Table is not available for a new session."""

    error_kind = "resource_busy"

    def __init__(self, table_id: int, current_status: str | None = None, **log_context: Any):
        if current_status:
            detail = f"Table {table_id} is not available (status: {current_status})"
        else:
            detail = f"Table {table_id} is not available"
        super().__init__(detail, table_id=table_id, current_status=current_status, **log_context)


class ItemUnavailableError(ConflictError):
    """Consumable item is switched off in the catalog."""

    error_kind = "item_unavailable"

    def __init__(self, item_id: int, **log_context: Any):
        super().__init__(f"Item {item_id} is not available", item_id=item_id, **log_context)


class InsufficientStockError(ConflictError):
    """Not enough stock to fulfil the requested quantity."""

    error_kind = "insufficient_stock"

    def __init__(self, item_id: int, requested: int, available: int | None = None, **log_context: Any):
        if available is not None:
            detail = f"Insufficient stock for item {item_id}: requested {requested}, available {available}"
        else:
            detail = f"Insufficient stock for item {item_id}: requested {requested}"
        super().__init__(detail, item_id=item_id, requested=requested, available=available, **log_context)


# =============================================================================
# 422 Configuration Errors
# =============================================================================


class PricingNotConfiguredError(AppException):
    """No usable active pricing policy for (table, service type)."""

    error_kind = "pricing_not_configured"

    def __init__(self, table_id: int, service_type_id: int, reason: str | None = None, **log_context: Any):
        detail = f"No active pricing for table {table_id} and service type {service_type_id}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            log_level="warning",
            table_id=table_id,
            service_type_id=service_type_id,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to render invoice", invoice_id=123)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class InvoiceCreationError(InternalError):
    """Invoice could not be created; the close was rolled back."""

    error_kind = "invoice_failed"

    def __init__(self, session_id: int, reason: str, **log_context: Any):
        detail = f"Could not create invoice for session {session_id}; session was not closed"
        super().__init__(detail, session_id=session_id, reason=reason, **log_context)


# =============================================================================
# 503 Retryable Infrastructure Errors
# =============================================================================


class PersistenceUnavailableError(AppException):
    """Store timed out or is unreachable. Nothing was written."""

    error_kind = "persistence_unavailable"
    retryable = True

    def __init__(self, operation: str, retry_after: int = 1, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database unavailable during {operation}. Please retry.",
            log_level="error",
            headers={"Retry-After": str(retry_after)},
            operation=operation,
            **log_context,
        )


class LockTimeoutError(AppException):
    """Another operation held the session for too long."""

    error_kind = "lock_timeout"
    retryable = True

    def __init__(self, key: str, timeout_seconds: float, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Timed out after {timeout_seconds}s waiting for {key}. Please retry.",
            log_level="warning",
            headers={"Retry-After": "1"},
            lock_key=key,
            timeout_seconds=timeout_seconds,
            **log_context,
        )
