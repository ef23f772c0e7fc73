"""Domain exception hierarchy for Rate Ledger.

All domain-specific exceptions inherit from RateLedgerError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types.
"""

from typing import Any


class RateLedgerError(Exception):
    """Base exception for all Rate Ledger errors.

    All domain exceptions should inherit from this class.
    Includes optional error_code for API responses and extra context.
    """

    error_code: str = "RATE_LEDGER_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(RateLedgerError):
    """Base exception for client input errors."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class InvalidRateError(ValidationError):
    """Raised when a rate is non-numeric, non-finite, non-positive or out of range."""

    error_code = "INVALID_RATE"

    def __init__(self, rate: object, reason: str) -> None:
        super().__init__(
            f"Invalid exchange rate '{rate}': {reason}",
            context={"rate": str(rate), "reason": reason},
        )


class InvalidPairError(ValidationError):
    """Raised when a currency pair is empty, malformed or converts a currency to itself."""

    error_code = "INVALID_PAIR"

    def __init__(self, from_currency: str, to_currency: str, reason: str) -> None:
        super().__init__(
            f"Invalid currency pair '{from_currency}/{to_currency}': {reason}",
            context={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "reason": reason,
            },
        )


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(RateLedgerError):
    """Base exception for database-related errors."""

    error_code = "DATABASE_ERROR"
    status_code = 500


class StorageError(DatabaseError):
    """Raised when a store operation fails to commit.

    Safe to retry with the same arguments: nothing from the failed
    operation is visible.
    """

    error_code = "STORAGE_ERROR"
    status_code = 503

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Storage operation '{operation}' failed: {reason}",
            context={"operation": operation, "reason": reason},
        )


class ConstraintViolationError(DatabaseError):
    """Raised when a write would break record positivity or immutability.

    Indicates a defect in the caller or in stored data; never corrected
    silently.
    """

    error_code = "CONSTRAINT_VIOLATION"

    def __init__(self, reason: str, **context: Any) -> None:
        super().__init__(
            f"Constraint violation: {reason}",
            context={"reason": reason, **context},
        )


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(RateLedgerError):
    """Base exception for authorization errors."""

    error_code = "AUTHORIZATION_ERROR"
    status_code = 403


class PermissionDeniedError(AuthorizationError):
    """Raised when an actor lacks permission for an action."""

    error_code = "PERMISSION_DENIED"

    def __init__(self, action: str, resource: str) -> None:
        super().__init__(
            f"Permission denied: cannot {action} on {resource}",
            context={"action": action, "resource": resource},
        )


class AuthenticationError(RateLedgerError):
    """Raised when a request carries no actor identity."""

    error_code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
