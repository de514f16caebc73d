"""
Vault-specific exceptions for settlement operations.

Every failure a settlement operation can report maps to exactly one of these
kinds. Each kind carries a stable machine-readable error code and the HTTP
status the action API answers with.

Exception Hierarchy:
    VaultError (base for the settlement domain)
    ├── NotFound - No matching order, escrow, wallet or withdrawal (404)
    ├── AlreadyExists - Duplicate hold for an order (409)
    ├── InvalidState - Operation not allowed in the current status (409)
    ├── InsufficientFunds - Withdrawal debit guard failed (422)
    ├── Unauthorized - Caller is not allowed to act on the record (403)
    ├── LedgerUnavailable - Transient storage failure, safe to retry (503)
    ├── ValidationFailed - Service-level input validation (400)
    ├── LockAcquisitionError - Distributed lock is held elsewhere (409)
    └── ImmutableLedgerEntry - Attempt to change or delete a ledger row (409)

Usage:
    from vault.exceptions import InvalidState, translate_database_errors

    with translate_database_errors():
        with transaction.atomic():
            ...  # OperationalError here surfaces as LedgerUnavailable
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import InterfaceError, OperationalError

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    UnprocessableError,
    ValidationError,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Generator
    from typing import Any


class VaultError(BaseApplicationError):
    """
    Base exception for all settlement operations.

    Example:
        try:
            EscrowService.confirm_and_release(...)
        except VaultError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "VAULT_ERROR"


class NotFound(VaultError, NotFoundError):
    """Raised when an order, escrow transaction, wallet or withdrawal doesn't exist."""

    default_error_code: str = "NOT_FOUND"


class AlreadyExists(VaultError, ConflictError):
    """
    Raised when a hold is requested for an order that already has one.

    The order id is the idempotency key of create_hold: a retry after a
    timeout lands here instead of opening a second hold.
    """

    default_error_code: str = "ALREADY_EXISTS"


class InvalidState(VaultError, ConflictError):
    """
    Raised when the record is not in a status that allows the operation.

    Distinct from the idempotent "already completed" outcome of a release,
    which is reported as a successful no-op.
    """

    default_error_code: str = "INVALID_STATE"


class InsufficientFunds(VaultError, UnprocessableError):
    """
    Raised when a guarded wallet debit finds the balance too low.

    Attributes:
        wallet_id: The wallet that could not be debited (None if missing)
        required: The amount that was requested
        available: The balance observed when the guard failed
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        wallet_id: uuid.UUID | None,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.wallet_id = wallet_id
        self.required = required
        self.available = available

        full_details = {
            "wallet_id": str(wallet_id) if wallet_id else None,
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Insufficient balance: required {required}, available {available}"
            ),
            error_code=error_code,
            details=full_details,
        )


class Unauthorized(VaultError, PermissionDeniedError):
    """Raised when the caller may not act on the escrow or withdrawal."""

    default_error_code: str = "UNAUTHORIZED"


class LedgerUnavailable(VaultError, ServiceUnavailableError):
    """
    Raised when the ledger store fails transiently.

    Every mutating settlement operation is idempotent with respect to the
    target record's terminal state, so callers (and the sweeper) may retry.
    """

    default_error_code: str = "LEDGER_UNAVAILABLE"


class ValidationFailed(VaultError, ValidationError):
    """Raised when service-level input validation fails."""

    default_error_code: str = "VALIDATION_ERROR"


class LockAcquisitionError(VaultError, ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        raise LockAcquisitionError(
            "Lock 'lock:vault:sweep' is already held",
            details={"key": "lock:vault:sweep"},
        )
    """

    default_error_code: str = "LOCK_CONTENTION"


class ImmutableLedgerEntry(VaultError, ConflictError):
    """Raised when code tries to update or delete an append-only ledger entry."""

    default_error_code: str = "LEDGER_ENTRY_IMMUTABLE"


@contextmanager
def translate_database_errors(operation: str = "") -> Generator[None, None, None]:
    """
    Re-raise connection-level database failures as LedgerUnavailable.

    Place this outside transaction.atomic() so the transaction has already
    rolled back by the time the caller sees the error.

    Args:
        operation: Name of the settlement operation, included in details
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        raise LedgerUnavailable(
            "Ledger store is temporarily unavailable",
            details={"operation": operation} if operation else None,
        ) from e
