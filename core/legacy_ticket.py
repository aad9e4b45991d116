"""Unsigned tickets printed before signed tickets existed.

``{PREFIX}-{userId}-{unixSeconds}`` carries no signature and no jti, so it
cannot be protected against replay; it is only honoured for a short window
while those printouts are still in circulation.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz
from sqlalchemy.orm import Session

from core.exceptions import (
    EnrollmentNotFoundError,
    TicketExpiredError,
    TicketRejection,
    TicketSecurityError,
)
from core.helper import ensure_utc, to_uuid, utc_now
from core.log import logger
from core.redemption import RedemptionResult, TicketRedeemer
from models.Enrollment import Enrollment
from repository import enrollment as enrollmentRepo
from repository import user as userRepo
from settings import LEGACY_TICKET_MAX_AGE_DAYS, LEGACY_TICKET_PREFIX

UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
ALLOWED_CLOCK_SKEW = timedelta(minutes=5)


@dataclass(frozen=True)
class LegacyTicket:
    user_id: uuid.UUID
    issued_at: datetime


def generate_legacy_token(user_id, issued_at: Optional[datetime] = None, prefix: str = "CONGRESO2024") -> str:
    """Only used by tests and data migration; new tickets are always signed."""
    issued_at = issued_at or utc_now()
    return f"{prefix}-{to_uuid(user_id, 'user_id')}-{int(issued_at.timestamp())}"


class LegacyTicketAdapter(TicketRedeemer):
    def __init__(
        self,
        prefix: str = "CONGRESO2024",
        max_age_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.prefix = prefix
        self.max_age = timedelta(days=max_age_days)
        self.clock = clock
        self.pattern = re.compile(
            rf"^{re.escape(prefix)}-({UUID_PATTERN})-(\d+)$"
        )

    def parse(self, token: str) -> LegacyTicket:
        match = self.pattern.match(token or "")
        if match is None:
            raise TicketSecurityError(TicketRejection.MALFORMED)

        try:
            issued_at = datetime.fromtimestamp(int(match.group(2)), tz=pytz.utc)
        except (OverflowError, OSError, ValueError):
            raise TicketSecurityError(TicketRejection.MALFORMED)

        now = self.clock()
        if issued_at - now > ALLOWED_CLOCK_SKEW:
            logger.warning(f"Legacy ticket issued in the future ({issued_at.isoformat()})")
            raise TicketSecurityError(TicketRejection.MALFORMED)
        if now - issued_at > self.max_age:
            logger.warning(f"Legacy ticket expired, issued at {issued_at.isoformat()}")
            raise TicketExpiredError()

        return LegacyTicket(user_id=uuid.UUID(match.group(1)), issued_at=issued_at)

    def _pick_enrollment(self, db: Session, user_id: uuid.UUID) -> Optional[Enrollment]:
        """First enrollment starting today that is not attended yet, else the last attended one."""
        day_start = self.clock().astimezone(pytz.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        todays = enrollmentRepo.get_user_enrollments_starting_between(
            db, user_id, day_start, day_start + timedelta(days=1)
        )
        if not todays:
            return None
        for enrollment in todays:
            if not enrollment.attended:
                return enrollment
        return todays[-1]

    def redeem(self, db: Session, token: str, staff_id, activity_id=None) -> RedemptionResult:
        """
        Mark attendance from a legacy ticket

        Args:
            db: Database session
            token: raw scanned text
            staff_id: staff user scanning
            activity_id: activity being checked in, when the scanner knows it

        Raises:
            TicketSecurityError: the text is not a legacy ticket or names an unknown user
            TicketExpiredError: older than the accepted window
            EnrollmentNotFoundError: nothing to mark for this participant
        """
        ticket = self.parse(token)
        staff_uuid = to_uuid(staff_id, "staff_id")
        if userRepo.get_user_by_id(db, ticket.user_id) is None:
            logger.warning(f"Legacy ticket for unknown user {ticket.user_id}")
            raise TicketSecurityError(TicketRejection.UNKNOWN)

        if activity_id is not None:
            enrollment = enrollmentRepo.get_enrollment_by_user_and_activity(
                db, ticket.user_id, to_uuid(activity_id, "activity_id")
            )
        else:
            enrollment = self._pick_enrollment(db, ticket.user_id)
        if enrollment is None:
            raise EnrollmentNotFoundError("No enrollment found for this code")

        enrollment_id = enrollment.id
        now = self.clock()
        if not enrollment.attended and enrollmentRepo.mark_attended(
            db, enrollment_id, attended_at=now
        ):
            logger.info(
                f"Legacy check-in for user {ticket.user_id}, enrollment {enrollment_id} by staff {staff_uuid}"
            )
            return RedemptionResult(
                success=True,
                message="Attendance registered successfully",
                already_processed=False,
                processed_at=ensure_utc(now),
                enrollment_id=enrollment_id,
            )

        db.expire_all()
        enrollment = enrollmentRepo.get_enrollment_by_id(db, enrollment_id)
        return RedemptionResult(
            success=True,
            message="Attendance was already registered",
            already_processed=True,
            processed_at=ensure_utc(enrollment.attended_at) if enrollment else None,
            enrollment_id=enrollment_id,
        )


legacy_ticket_adapter = LegacyTicketAdapter(
    prefix=LEGACY_TICKET_PREFIX, max_age_days=LEGACY_TICKET_MAX_AGE_DAYS
)
