"""Domain errors of the enrollment and ticketing engine."""

from enum import Enum
from typing import Optional, Sequence


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ACTIVITY_NOT_FOUND = "ACTIVITY_NOT_FOUND"
    ACTIVITY_UNAVAILABLE = "ACTIVITY_UNAVAILABLE"
    NOT_ENROLLED = "NOT_ENROLLED"
    DUPLICATE_ENROLLMENT = "DUPLICATE_ENROLLMENT"
    TIME_CONFLICT = "TIME_CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    TICKET_INVALID = "TICKET_INVALID"
    TICKET_EXPIRED = "TICKET_EXPIRED"
    ENROLLMENT_NOT_FOUND = "ENROLLMENT_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"


class TicketRejection(str, Enum):
    """Internal reason a ticket was refused. Never shown to scanners."""

    MALFORMED = "malformed"
    SIGNATURE = "signature"
    UNKNOWN = "unknown"
    REPLAY = "replay"
    EXPIRED = "expired"
    REVOKED = "revoked"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidRequestError(DomainError):
    """Malformed or unknown input. Not retryable as-is."""

    code = ErrorCode.INVALID_REQUEST


class ConflictError(DomainError):
    """Business rule violation surfaced verbatim to the caller."""


class DuplicateEnrollmentError(ConflictError):
    code = ErrorCode.DUPLICATE_ENROLLMENT

    def __init__(self, activity_ids: Sequence[str] = ()) -> None:
        super().__init__("User is already enrolled in one or more activities")
        self.activity_ids = [str(a) for a in activity_ids]


class TimeConflictError(ConflictError):
    code = ErrorCode.TIME_CONFLICT

    def __init__(self, activity_id: str, with_activity_id: str) -> None:
        super().__init__(
            "The selected activities overlap in date/time; choose only one"
        )
        self.activity_id = str(activity_id)
        self.with_activity_id = str(with_activity_id)


class CapacityExceededError(ConflictError):
    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, activity_id: str) -> None:
        super().__init__("There are no seats left for this activity")
        self.activity_id = str(activity_id)


class TicketError(DomainError):
    """Base of every ticket rejection; ``reason`` stays server side."""

    def __init__(self, reason: TicketRejection, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class TicketSecurityError(TicketError):
    code = ErrorCode.TICKET_INVALID

    def __init__(self, reason: TicketRejection) -> None:
        super().__init__(reason, "Invalid code")


class TicketExpiredError(TicketError):
    code = ErrorCode.TICKET_EXPIRED

    def __init__(self, reason: TicketRejection = TicketRejection.EXPIRED) -> None:
        super().__init__(reason, "This code has expired, ask for a new one")


class EnrollmentNotFoundError(DomainError):
    code = ErrorCode.ENROLLMENT_NOT_FOUND

    def __init__(self, message: str = "Enrollment not found") -> None:
        super().__init__(message)


class EnrollmentForbiddenError(DomainError):
    code = ErrorCode.FORBIDDEN

    def __init__(self) -> None:
        super().__init__("Only the owner or staff can cancel this enrollment")
