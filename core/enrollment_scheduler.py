"""All-or-nothing admission of a participant into a batch of activities.

Admission serialises per participant and per activity: the in-process lock
registry and the ``SELECT ... FOR UPDATE`` row locks take the participant
first, then the activities in id order, and are held until the transaction
ends. Tickets are issued only after the commit and outside the locks, so a
slow signer never blocks other admissions.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import (
    CapacityExceededError,
    DomainError,
    DuplicateEnrollmentError,
    EnrollmentForbiddenError,
    EnrollmentNotFoundError,
    ErrorCode,
    InvalidRequestError,
    TimeConflictError,
)
from core.helper import ensure_utc, to_uuid
from core.locks import AdmissionLockRegistry, admission_locks, user_lock_key
from core.log import logger
from core.metrics import NullObserver, TicketingObserver, metrics_observer
from core.notifier import ConfirmedEnrollment, EnrollmentNotifier
from core.secure_ticket import SecureTicketService, secure_ticket_service
from models.Activity import Activity
from models.Enrollment import Enrollment
from repository import activity as activityRepo
from repository import enrollment as enrollmentRepo
from repository import user as userRepo
from schemas.enrollment import CapacityStatusItem, TimeConflictItem

STATUS_FULL = "FULL"
STATUS_ALMOST_FULL = "ALMOST_FULL"
STATUS_FEW_SPOTS = "FEW_SPOTS"
STATUS_AVAILABLE = "AVAILABLE"
STATUS_UNLIMITED = "UNLIMITED"


@dataclass(frozen=True)
class AdmissionResult:
    activity_id: uuid.UUID
    enrollment_id: uuid.UUID
    seat_number: int
    ticket_id: Optional[str] = None
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    ticket_pending: bool = False


def activities_overlap(a: Activity, b: Activity) -> bool:
    """Half-open ``[start, end)`` overlap; an activity without times never conflicts."""
    if a.start is None or a.end is None or b.start is None or b.end is None:
        return False
    return ensure_utc(a.start) < ensure_utc(b.end) and ensure_utc(b.start) < ensure_utc(
        a.end
    )


def _describe(activity: Activity) -> str:
    start = ensure_utc(activity.start)
    end = ensure_utc(activity.end)
    return f"'{activity.title}' ({start:%Y-%m-%d %H:%M}-{end:%H:%M} UTC)"


def _capacity_label(percentage: float) -> str:
    if percentage >= 100:
        return STATUS_FULL
    if percentage >= 90:
        return STATUS_ALMOST_FULL
    if percentage >= 75:
        return STATUS_FEW_SPOTS
    return STATUS_AVAILABLE


class EnrollmentScheduler:
    def __init__(
        self,
        ticket_service: SecureTicketService,
        locks: Optional[AdmissionLockRegistry] = None,
        observer: Optional[TicketingObserver] = None,
    ):
        self.ticket_service = ticket_service
        self.locks = locks or AdmissionLockRegistry()
        self.observer = observer or NullObserver()

    def _parse_request(self, activity_ids: Sequence) -> List[uuid.UUID]:
        if not activity_ids:
            raise InvalidRequestError("At least one activity is required")
        requested = [to_uuid(a, "activity_id") for a in activity_ids]
        if len(set(requested)) != len(requested):
            raise InvalidRequestError("The same activity was requested more than once")
        return requested

    def admit_batch(
        self,
        db: Session,
        user_id,
        activity_ids: Sequence,
        notifier: Optional[EnrollmentNotifier] = None,
    ) -> List[AdmissionResult]:
        """
        Enroll a user into every requested activity or none of them

        Args:
            db: Database session, committed by this call
            user_id: participant id
            activity_ids: activities in the order the caller wants them reported
            notifier: told once about the whole batch, its failures are ignored

        Returns:
            One AdmissionResult per requested activity, in request order.
            An item whose ticket could not be issued has ``ticket_pending=True``.

        Raises:
            InvalidRequestError: empty, malformed or repeated ids, unknown user or activity
            DuplicateEnrollmentError: already enrolled in one of the activities
            TimeConflictError: two activities overlap, in the batch or with an existing enrollment
            CapacityExceededError: an activity has no seats left
        """
        try:
            requested = self._parse_request(activity_ids)
            user_uuid = to_uuid(user_id, "user_id")
            admitted = self._admit(db, user_uuid, requested)
        except DomainError as e:
            self.observer.admission(e.code.value.lower())
            raise
        self.observer.admission("admitted")
        logger.info(
            f"User {user_uuid} admitted into {len(admitted)} activities: {[str(a[0]) for a in admitted]}"
        )

        results = [
            self._issue_ticket(db, user_uuid, activity_id, enrollment_id, seat)
            for activity_id, enrollment_id, seat in admitted
        ]
        if notifier is not None:
            self._notify(db, notifier, user_uuid, results)
        return results

    def _admit(
        self, db: Session, user_id: uuid.UUID, requested: List[uuid.UUID]
    ) -> List[Tuple[uuid.UUID, uuid.UUID, int]]:
        # the participant first, then activities, in every path that takes both
        with self.locks.hold([user_lock_key(user_id)]), self.locks.hold(requested):
            try:
                if userRepo.lock_user_by_id(db, user_id) is None:
                    raise InvalidRequestError("User not found", ErrorCode.USER_NOT_FOUND)
                activities = activityRepo.lock_activities_by_ids(db, requested)
                by_id = {a.id: a for a in activities}
                for activity_id in requested:
                    if activity_id not in by_id:
                        raise InvalidRequestError(
                            f"Activity {activity_id} not found",
                            ErrorCode.ACTIVITY_NOT_FOUND,
                        )
                ordered = [by_id[a] for a in requested]

                existing = enrollmentRepo.get_enrollments_by_user_id(db, user_id)
                enrolled = {e.activity_id for e in existing}
                duplicates = [a for a in requested if a in enrolled]
                if duplicates:
                    raise DuplicateEnrollmentError(duplicates)

                for a, b in combinations(ordered, 2):
                    if activities_overlap(a, b):
                        raise TimeConflictError(a.id, b.id)
                for activity in ordered:
                    for enrollment in existing:
                        if activities_overlap(activity, enrollment.activity):
                            raise TimeConflictError(activity.id, enrollment.activity_id)

                admitted = []
                for activity in ordered:
                    live = enrollmentRepo.count_live_enrollments(db, activity.id)
                    if activity.capacity is not None and live >= activity.capacity:
                        raise CapacityExceededError(activity.id)
                    # cancellations leave gaps, never reuse a live seat
                    seat = max(live, enrollmentRepo.get_highest_seat_number(db, activity.id)) + 1
                    enrollment = enrollmentRepo.create_enrollment(
                        db, user_id, activity.id, seat, is_commit=False
                    )
                    admitted.append((activity.id, enrollment.id, seat))
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"Unique constraint hit while admitting user {user_id}")
                raise DuplicateEnrollmentError(requested)
            except DomainError as e:
                db.rollback()
                logger.info(f"Admission refused for user {user_id}: {e}")
                raise
            except Exception:
                db.rollback()
                logger.exception(f"Error admitting user {user_id}")
                raise
        return admitted

    def _issue_ticket(
        self,
        db: Session,
        user_id: uuid.UUID,
        activity_id: uuid.UUID,
        enrollment_id: uuid.UUID,
        seat_number: int,
    ) -> AdmissionResult:
        try:
            ticket = self.ticket_service.issue(db, user_id, activity_id)
        except Exception as e:
            logger.warning(
                f"Ticket pending for enrollment {enrollment_id} (activity {activity_id}): {e}"
            )
            return AdmissionResult(
                activity_id=activity_id,
                enrollment_id=enrollment_id,
                seat_number=seat_number,
                ticket_pending=True,
            )
        return AdmissionResult(
            activity_id=activity_id,
            enrollment_id=enrollment_id,
            seat_number=seat_number,
            ticket_id=ticket.ticket_id,
            token=ticket.token,
            expires_at=ticket.expires_at,
        )

    def _notify(
        self,
        db: Session,
        notifier: EnrollmentNotifier,
        user_id: uuid.UUID,
        results: List[AdmissionResult],
    ) -> None:
        try:
            user = userRepo.get_user_by_id(db, user_id)
            activities = {
                a.id: a
                for a in activityRepo.get_activities_by_ids(
                    db, [r.activity_id for r in results]
                )
            }
            confirmed = []
            for r in results:
                activity = activities.get(r.activity_id)
                start = ensure_utc(activity.start) if activity else None
                confirmed.append(
                    ConfirmedEnrollment(
                        activity_id=str(r.activity_id),
                        seat_number=r.seat_number,
                        ticket_token=r.token,
                        title=activity.title if activity else None,
                        start=f"{start:%Y-%m-%d %H:%M} UTC" if start else None,
                        location=activity.location if activity else None,
                    )
                )
            notifier.notify_enrollment_confirmed(user, confirmed)
        except Exception:
            # admission is already committed, a lost email must not undo it
            logger.exception(f"Error notifying enrollment of user {user_id}")

    def cancel_enrollment(
        self, db: Session, enrollment_id, requester_id, is_staff: bool = False
    ) -> None:
        """Delete an enrollment; issued tickets stay in the store for audit."""
        enrollment: Optional[Enrollment] = enrollmentRepo.get_enrollment_by_id(
            db, to_uuid(enrollment_id, "enrollment_id")
        )
        if enrollment is None:
            raise EnrollmentNotFoundError()
        if not is_staff and enrollment.user_id != to_uuid(requester_id, "requester_id"):
            raise EnrollmentForbiddenError()

        enrollment_uuid = enrollment.id
        owner_id = enrollment.user_id
        with self.locks.hold([enrollment.activity_id]):
            try:
                activityRepo.lock_activities_by_ids(db, [enrollment.activity_id])
                enrollmentRepo.delete_enrollment(db, enrollment_uuid)
            except Exception:
                db.rollback()
                logger.exception(f"Error cancelling enrollment {enrollment_uuid}")
                raise
        logger.info(
            f"Enrollment {enrollment_uuid} of user {owner_id} cancelled by {requester_id}"
        )

    def find_time_conflicts(
        self, db: Session, activity_ids: Sequence
    ) -> List[TimeConflictItem]:
        """Preview overlaps inside a selection before admitting it; takes no locks."""
        if not activity_ids:
            return []
        requested = list(dict.fromkeys(to_uuid(a, "activity_id") for a in activity_ids))
        by_id = {a.id: a for a in activityRepo.get_activities_by_ids(db, requested)}
        ordered = [by_id[a] for a in requested if a in by_id]

        conflicts = []
        for a, b in combinations(ordered, 2):
            if activities_overlap(a, b):
                conflicts.append(
                    TimeConflictItem(
                        activity_id=str(a.id),
                        with_activity_id=str(b.id),
                        description=f"{_describe(a)} overlaps {_describe(b)}",
                    )
                )
        return conflicts

    def find_conflict_with_enrollments(
        self, db: Session, user_id, activity_id
    ) -> Optional[Activity]:
        """First activity the user is enrolled in that overlaps ``activity_id``."""
        activity = activityRepo.get_activity_by_id(db, to_uuid(activity_id, "activity_id"))
        if activity is None:
            raise InvalidRequestError("Activity not found", ErrorCode.ACTIVITY_NOT_FOUND)
        for enrollment in enrollmentRepo.get_enrollments_by_user_id(
            db, to_uuid(user_id, "user_id")
        ):
            if enrollment.activity_id == activity.id:
                continue
            if activities_overlap(activity, enrollment.activity):
                return enrollment.activity
        return None

    def capacity_status(
        self, db: Session, activity_ids: Sequence
    ) -> List[CapacityStatusItem]:
        requested = list(dict.fromkeys(to_uuid(a, "activity_id") for a in activity_ids))
        by_id = {a.id: a for a in activityRepo.get_activities_by_ids(db, requested)}

        results = []
        for activity_id in requested:
            activity = by_id.get(activity_id)
            if activity is None:
                continue
            current = enrollmentRepo.count_live_enrollments(db, activity.id)
            if activity.capacity is None:
                results.append(
                    CapacityStatusItem(
                        activity_id=str(activity.id),
                        activity_title=activity.title,
                        current_enrollments=current,
                        has_capacity_limit=False,
                        is_full=False,
                        capacity_percentage=0.0,
                        status=STATUS_UNLIMITED,
                    )
                )
                continue

            percentage = (
                round(current / activity.capacity * 100, 2) if activity.capacity else 100.0
            )
            results.append(
                CapacityStatusItem(
                    activity_id=str(activity.id),
                    activity_title=activity.title,
                    current_enrollments=current,
                    max_capacity=activity.capacity,
                    available_spots=max(activity.capacity - current, 0),
                    has_capacity_limit=True,
                    is_full=current >= activity.capacity,
                    capacity_percentage=percentage,
                    status=_capacity_label(percentage),
                )
            )
        return results

    def retry_pending_tickets(self, db: Session, user_id=None) -> List[AdmissionResult]:
        """Issue tickets for enrollments admitted while the signer was failing."""
        user_uuid = to_uuid(user_id, "user_id") if user_id is not None else None
        pending = [
            (e.user_id, e.activity_id, e.id, e.seat_number)
            for e in enrollmentRepo.get_enrollments_without_ticket(db, user_uuid)
        ]
        results = [self._issue_ticket(db, *p) for p in pending]
        issued = sum(1 for r in results if not r.ticket_pending)
        logger.info(f"Retried {len(results)} pending tickets, {issued} issued")
        return results


enrollment_scheduler = EnrollmentScheduler(
    ticket_service=secure_ticket_service,
    locks=admission_locks,
    observer=metrics_observer,
)
