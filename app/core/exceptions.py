"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- A default HTTP status per error family, used by API views

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures (400)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── NotFoundError - Resource not found (404)
    ├── ConflictError - State conflicts: duplicates, wrong state (409)
    ├── UnprocessableError - Well-formed request that business rules reject (422)
    └── ServiceUnavailableError - Transient infrastructure failures (503)

Usage:
    from core.exceptions import NotFoundError, ConflictError

    # Raise with message only
    raise NotFoundError("Order not found")

    # Raise with error code and details for client handling
    raise ConflictError(
        "Escrow already exists for this order",
        error_code="ALREADY_EXISTS",
        details={"order_id": str(order_id)},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (identifiers, amounts, states)
        http_status: HTTP status an API view should answer with
        is_retryable: Whether the caller may safely retry the same operation

    Example:
        try:
            escrow = EscrowService.get_status(order_id)
        except NotFoundError as e:
            logger.warning(f"Escrow not found: {e.error_code}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and (when present) details keys

        Example:
            {
                "error": "Escrow transaction not found",
                "error_code": "NOT_FOUND",
                "details": {"transaction_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails in the service layer.

    Use for:
    - Non-positive amounts
    - Unknown enum values (payout method, etc.)
    - Missing confirmations the caller must give explicitly

    Note:
        For DRF serializer validation, use DRF's built-in validation.
        Use this for service-layer validation logic.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Example:
        if escrow.buyer_id != user.id:
            raise PermissionDeniedError("Only the buyer can confirm delivery")

    Note:
        For authentication failures (missing/invalid token), use DRF's
        AuthenticationFailed. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        order = Order.objects.filter(id=order_id).first()
        if not order:
            raise NotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Invalid state transitions
    - Contended locks

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class UnprocessableError(BaseApplicationError):
    """
    Raised when a well-formed request is rejected by a business rule.

    Example:
        if rows_updated == 0:
            raise UnprocessableError("Balance too low for this withdrawal")
    """

    default_error_code: str = "UNPROCESSABLE"
    http_status: int = 422


class ServiceUnavailableError(BaseApplicationError):
    """
    Raised when a backing service (database, broker) is transiently down.

    Operations that raise this are safe to retry unchanged.

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "SERVICE_UNAVAILABLE"
    http_status: int = 503
    is_retryable: bool = True
