"""
Domain error taxonomy for the RFQ workflow.

Every error raised by the stores and the allocation engine is terminal for
the triggering call. The API layer renders them through a single exception
handler using ``status_code``, ``code`` and ``details``.
"""
from typing import Any, Dict, Iterable, Optional


class DomainError(Exception):
    """Base class for workflow errors."""

    status_code = 400
    code = "domain_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"detail": self.message, "error": self.code}
        payload.update(self.details)
        return payload


class ValidationError(DomainError):
    """Malformed or missing input; the caller must correct and retry."""

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str,
        missing: Optional[Iterable[str]] = None,
        invalid: Optional[Iterable[str]] = None,
        **details: Any,
    ):
        if missing:
            details["missing"] = list(missing)
        if invalid:
            details["invalid"] = list(invalid)
        super().__init__(message, **details)


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(DomainError):
    """Requested status change would move an RFQ backwards."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move RFQ from '{current}' to '{requested}'",
            current=current,
            requested=requested,
        )


class AlreadyClosedError(DomainError):
    """Finalize attempted on an RFQ that is already closed."""

    status_code = 409
    code = "already_closed"


class NotInvitedError(DomainError):
    status_code = 403
    code = "not_invited"


class ClosedRFQError(DomainError):
    """Quote submitted after the RFQ left the quoting window."""

    status_code = 409
    code = "rfq_closed"


class AllocationMismatchError(DomainError):
    status_code = 422
    code = "allocation_mismatch"

    def __init__(self, computed: int, expected: int):
        super().__init__(
            f"Total containers allocated ({computed}) does not match required ({expected})",
            computed=computed,
            expected=expected,
        )


class NegativeAllocationError(DomainError):
    status_code = 422
    code = "negative_allocation"

    def __init__(self, quote_id: str, home: int, moowr: int):
        super().__init__(
            f"Negative allotment for quote {quote_id}",
            quoteId=quote_id,
            containersAllottedHome=home,
            containersAllottedMOOWR=moowr,
        )
