from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import (
    DomainError,
    ErrorCode,
    InvalidRequestError,
    TicketRejection,
    TicketSecurityError,
)
from core.helper import to_uuid
from core.log import logger
from core.legacy_ticket import legacy_ticket_adapter
from core.metrics import NullObserver, TicketingObserver, metrics_observer
from core.redemption import RedemptionResult, TicketRedeemer
from core.secure_ticket import secure_ticket_service
from models.Activity import Activity
from models.Enrollment import Enrollment
from repository import activity as activityRepo
from repository import enrollment as enrollmentRepo
from schemas.ticket import AttendanceStatsResponse, TicketFormat
from settings import LEGACY_TICKET_ENABLED


@dataclass(frozen=True)
class ScanResult:
    result: RedemptionResult
    format: TicketFormat


class AttendanceScanner:
    """
    Front door for scanned codes

    Signed tickets are always tried first. The legacy redeemer only sees the
    code when the signed one could not even parse it; an expired, forged or
    replayed signed ticket never falls through to the unsigned format.
    """

    def __init__(
        self,
        secure: TicketRedeemer,
        legacy: Optional[TicketRedeemer] = None,
        observer: Optional[TicketingObserver] = None,
    ):
        self.secure = secure
        self.legacy = legacy
        self.observer = observer or NullObserver()

    def scan(self, db: Session, token: str, staff_id, activity_id=None) -> ScanResult:
        token = (token or "").strip()
        try:
            result = self.secure.redeem(db, token, staff_id, activity_id)
        except TicketSecurityError as e:
            if e.reason != TicketRejection.MALFORMED or self.legacy is None:
                self.observer.ticket_scanned(False, True)
                raise
        except DomainError:
            self.observer.ticket_scanned(False, True)
            raise
        else:
            self.observer.ticket_scanned(True, True)
            return ScanResult(result=result, format=TicketFormat.secure)

        logger.info("Code is not a signed ticket, trying legacy format")
        try:
            result = self.legacy.redeem(db, token, staff_id, activity_id)
        except DomainError:
            self.observer.ticket_scanned(False, False)
            raise
        self.observer.ticket_scanned(True, False)
        return ScanResult(result=result, format=TicketFormat.legacy)


def _get_activity(db: Session, activity_id) -> Activity:
    activity = activityRepo.get_activity_by_id(db, to_uuid(activity_id, "activity_id"))
    if activity is None:
        raise InvalidRequestError("Activity not found", ErrorCode.ACTIVITY_NOT_FOUND)
    return activity


def attendance_for_activity(db: Session, activity_id) -> List[Enrollment]:
    """Enrollments of an activity, attended first, with their users loaded."""
    activity = _get_activity(db, activity_id)
    return enrollmentRepo.get_enrollments_by_activity_id(db, activity.id)


def attendance_stats(db: Session, activity_id) -> AttendanceStatsResponse:
    activity = _get_activity(db, activity_id)
    total_enrolled = enrollmentRepo.count_live_enrollments(db, activity.id)
    total_attended = enrollmentRepo.count_attended(db, activity.id)

    attendance_rate = (
        round(total_attended / total_enrolled * 100, 2) if total_enrolled else 0.0
    )
    capacity_utilization = None
    if activity.capacity:
        capacity_utilization = round(total_enrolled / activity.capacity * 100, 2)

    return AttendanceStatsResponse(
        activity_id=str(activity.id),
        activity_title=activity.title,
        total_enrolled=total_enrolled,
        total_attended=total_attended,
        attendance_rate=attendance_rate,
        capacity=activity.capacity,
        capacity_utilization=capacity_utilization,
    )


attendance_scanner = AttendanceScanner(
    secure=secure_ticket_service,
    legacy=legacy_ticket_adapter if LEGACY_TICKET_ENABLED else None,
    observer=metrics_observer,
)
