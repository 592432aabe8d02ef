"""
Plan Ledger Exception Hierarchy

Every error raised by the core carries a stable machine-readable code, the HTTP
status the API layer should answer with, and optional structured details that
are safe to show to a caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class PlanLedgerError(Exception):
    """
    Base exception class for all plan ledger errors.

    Attributes
    ----------
    message : str
        Human-readable error message
    error_code : str
        Machine-readable error code, stable across releases
    status_code : int
        HTTP status used when the error crosses the API boundary
    details : Dict[str, Any]
        Additional context (entity ids, offending values)
    timestamp : datetime
        When the error occurred
    """

    default_code = "ERR_API_INTERNAL"
    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = dict(details or {})
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Error payload in the shape the API returns."""
        body: Dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"details={self.details!r}"
            f")"
        )


class ValidationError(PlanLedgerError):
    """Malformed or missing input the caller can fix."""

    default_code = "ERR_API_VALIDATION_FAILED"
    status_code = 400


class NotFoundError(PlanLedgerError):
    """A referenced plan, version, entry, packet, record or export is absent."""

    default_code = "ERR_API_NOT_FOUND"
    status_code = 404


class InvalidStateError(PlanLedgerError):
    """The operation is not valid in the entity's current lifecycle state."""

    default_code = "ERR_STATE_INVALID"
    status_code = 409


class AlreadyVoidedError(InvalidStateError):
    """Void attempted on a decision that is already VOID."""

    default_code = "ERR_DECISION_ALREADY_VOIDED"


class ConflictError(PlanLedgerError):
    """Lost the version-number race; the whole finalize should be retried."""

    default_code = "ERR_VERSION_CONFLICT"
    status_code = 409


class NotEligibleError(PlanLedgerError):
    """A business-rule gate refused the operation."""

    default_code = "ERR_NOT_ELIGIBLE"
    status_code = 422


class ForbiddenError(PlanLedgerError):
    """The caller's role may not perform the operation (HTTP layer only)."""

    default_code = "ERR_API_FORBIDDEN"
    status_code = 403


class AuthRequiredError(PlanLedgerError):
    default_code = "ERR_API_AUTH_REQUIRED"
    status_code = 401


# ---------------------------------------------------------------------------
# Constructors for the errors raised from more than one place
# ---------------------------------------------------------------------------

def plan_not_found(plan_instance_id: Any) -> NotFoundError:
    return NotFoundError(
        "Plan not found", "ERR_API_PLAN_NOT_FOUND", {"planInstanceId": str(plan_instance_id)}
    )


def version_not_found(version_id: Any) -> NotFoundError:
    return NotFoundError(
        "Plan version not found", "ERR_VERSION_NOT_FOUND", {"versionId": str(version_id)}
    )


def decision_not_found(entry_id: Any) -> NotFoundError:
    return NotFoundError(
        "Decision not found", "ERR_DECISION_NOT_FOUND", {"decisionId": str(entry_id)}
    )


def packet_not_found(packet_id: Any) -> NotFoundError:
    return NotFoundError(
        "Signature packet not found", "ERR_SIGN_PACKET_NOT_FOUND", {"packetId": str(packet_id)}
    )


def record_not_found(record_id: Any) -> NotFoundError:
    return NotFoundError(
        "Signature record not found",
        "ERR_SIGN_RECORD_NOT_FOUND",
        {"signatureRecordId": str(record_id)},
    )


def packet_not_open(packet_id: Any, status: Any) -> InvalidStateError:
    return InvalidStateError(
        "Signature packet is not open",
        "ERR_SIGN_PACKET_NOT_OPEN",
        {"packetId": str(packet_id), "status": getattr(status, "value", status)},
    )


def record_not_pending(record_id: Any, status: Any) -> InvalidStateError:
    return InvalidStateError(
        "Signature record is not pending",
        "ERR_SIGN_RECORD_NOT_PENDING",
        {"signatureRecordId": str(record_id), "status": getattr(status, "value", status)},
    )


def decision_already_voided(entry_id: Any) -> AlreadyVoidedError:
    return AlreadyVoidedError(
        "Decision already voided", details={"decisionId": str(entry_id)}
    )


__all__ = [
    "PlanLedgerError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "AlreadyVoidedError",
    "ConflictError",
    "NotEligibleError",
    "ForbiddenError",
    "AuthRequiredError",
    "plan_not_found",
    "version_not_found",
    "decision_not_found",
    "packet_not_found",
    "record_not_found",
    "packet_not_open",
    "record_not_pending",
    "decision_already_voided",
]
