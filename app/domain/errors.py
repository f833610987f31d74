"""
Domain Errors
Machine-readable error taxonomy shared by services, engine and API
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for operational errors surfaced to callers"""

    status_code: int = 400
    error_code: str = "APP_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "error_code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


# ------------------------------------------------------------------
# Input errors (rejected synchronously, never retried)
# ------------------------------------------------------------------

class ValidationError(AppError):
    error_code = "VALIDATION_ERROR"


class InvalidFrequency(ValidationError):
    error_code = "INVALID_FREQUENCY"

    def __init__(self, frequency: Any):
        super().__init__(
            f"Unsupported frequency: {frequency}",
            details={"frequency": str(frequency)},
        )


class InvalidDate(ValidationError):
    error_code = "INVALID_DATE"

    def __init__(self, value: Any):
        super().__init__(
            f"Invalid calendar date: {value!r} (expected YYYY-MM-DD)",
            details={"value": str(value)},
        )


class InvalidState(AppError):
    status_code = 409
    error_code = "INVALID_STATE"


class PlanNotFound(AppError):
    status_code = 404
    error_code = "PLAN_NOT_FOUND"

    def __init__(self, plan_id: int):
        super().__init__(f"Plan {plan_id} not found", details={"plan_id": plan_id})


class AccountNotFound(AppError):
    status_code = 404
    error_code = "ACCOUNT_NOT_FOUND"

    def __init__(self, user_id: int):
        super().__init__(f"Demo account not found for user {user_id}", details={"user_id": user_id})


class Unauthorized(AppError):
    status_code = 403
    error_code = "UNAUTHORIZED"


# ------------------------------------------------------------------
# Business errors (recorded as FAILED executions by the engine)
# ------------------------------------------------------------------

class BusinessRuleError(AppError):
    """Installment-level failure; the engine records it instead of raising"""

    reason: str = "BusinessRuleError"


class NavUnavailable(BusinessRuleError):
    error_code = "NAV_UNAVAILABLE"
    reason = "NavUnavailable"


class InsufficientBalance(BusinessRuleError):
    error_code = "INSUFFICIENT_BALANCE"
    reason = "InsufficientBalance"


class InsufficientUnits(BusinessRuleError):
    error_code = "INSUFFICIENT_UNITS"
    reason = "InsufficientUnits"
