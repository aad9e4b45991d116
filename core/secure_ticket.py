import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import (
    DomainError,
    EnrollmentNotFoundError,
    ErrorCode,
    InvalidRequestError,
    TicketError,
    TicketExpiredError,
    TicketRejection,
    TicketSecurityError,
)
from core.helper import ensure_utc, to_uuid, utc_now
from core.log import logger
from core.metrics import NullObserver, TicketingObserver, metrics_observer
from core.redemption import RedemptionResult, TicketRedeemer
from core.ticket_codec import decode_token, encode_token, new_ticket_id
from models.Ticket import Ticket
from repository import activity as activityRepo
from repository import enrollment as enrollmentRepo
from repository import ticket as ticketRepo
from repository import user as userRepo
from schemas.ticket import TicketPayload
from settings import TICKET_REISSUE_POLICY, TICKET_SECRET, TICKET_TTL_SECONDS

REISSUE_ALLOW_MANY = "allow_many"
REISSUE_INVALIDATE = "invalidate"


@dataclass(frozen=True)
class IssuedTicket:
    ticket_id: str
    token: str
    expires_at: datetime


def _prefix(ticket_id: str) -> str:
    return ticket_id[:8] + "..."


class SecureTicketService(TicketRedeemer):
    """
    Issues, validates and redeems HMAC signed attendance tickets

    Every issued jti is stored before its token leaves this service, so the
    ticket store is the single source of truth for anti-replay. Redemption
    resolves concurrent scans with a compare-and-set on ``ticket.used``.
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 604800,
        reissue_policy: str = REISSUE_ALLOW_MANY,
        observer: Optional[TicketingObserver] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if reissue_policy not in (REISSUE_ALLOW_MANY, REISSUE_INVALIDATE):
            raise ValueError(f"unknown reissue policy {reissue_policy}")
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.reissue_policy = reissue_policy
        self.observer = observer or NullObserver()
        self.clock = clock

    def issue(self, db: Session, user_id, activity_id) -> IssuedTicket:
        """
        Issue a signed ticket for an existing enrollment

        Args:
            db: Database session, committed by this call
            user_id: participant id
            activity_id: activity id

        Returns:
            IssuedTicket with the jti, the token and its expiry

        Raises:
            InvalidRequestError: USER_NOT_FOUND, ACTIVITY_UNAVAILABLE or NOT_ENROLLED
        """
        user_uuid = to_uuid(user_id, "user_id")
        activity_uuid = to_uuid(activity_id, "activity_id")
        try:
            if userRepo.get_user_by_id(db, user_uuid) is None:
                raise InvalidRequestError("User not found", ErrorCode.USER_NOT_FOUND)

            activity = activityRepo.get_available_activity_by_id(db, activity_uuid)
            if activity is None:
                raise InvalidRequestError(
                    "Activity not found or not available",
                    ErrorCode.ACTIVITY_UNAVAILABLE,
                )

            enrollment = enrollmentRepo.get_enrollment_by_user_and_activity(
                db, user_uuid, activity_uuid
            )
            if enrollment is None:
                raise InvalidRequestError(
                    "User is not enrolled in this activity", ErrorCode.NOT_ENROLLED
                )

            now = self.clock().replace(microsecond=0)
            expires_at = now + timedelta(seconds=self.ttl_seconds)
            ticket_id = new_ticket_id()

            if self.reissue_policy == REISSUE_INVALIDATE:
                revoked = ticketRepo.revoke_unused_tickets(
                    db, user_uuid, activity_uuid, revoked_at=now, is_commit=False
                )
                if revoked:
                    logger.info(
                        f"Revoked {revoked} previous ticket(s) for user {user_uuid} in activity {activity_uuid}"
                    )

            # the jti must be durable before anybody can hold its token
            ticketRepo.create_ticket(
                db,
                ticket_id=ticket_id,
                user_id=user_uuid,
                activity_id=activity_uuid,
                enrollment_id=enrollment.id,
                issued_at=now,
                expires_at=expires_at,
                is_commit=False,
            )
            enrollmentRepo.set_ticket_reference(
                db, enrollment.id, ticket_id, is_commit=False
            )
            db.commit()
        except DomainError:
            db.rollback()
            self.observer.ticket_issued(False)
            raise
        except Exception:
            db.rollback()
            logger.exception(
                f"Error issuing ticket for user {user_uuid}, activity {activity_uuid}"
            )
            self.observer.ticket_issued(False)
            raise

        payload = TicketPayload(
            sub=str(user_uuid),
            act=str(activity_uuid),
            iat=int(now.timestamp()),
            jti=ticket_id,
            exp=int(expires_at.timestamp()),
        )
        token = encode_token(payload, self.secret)
        logger.info(
            f"Issued ticket {_prefix(ticket_id)} for user {user_uuid}, activity {activity_uuid}, expires at {expires_at.isoformat()}"
        )
        self.observer.ticket_issued(True)
        return IssuedTicket(ticket_id=ticket_id, token=token, expires_at=expires_at)

    def _verify(self, db: Session, token: str) -> Tuple[TicketPayload, Ticket]:
        """Structure, signature, expiry and store lookup, in that order."""
        try:
            payload = decode_token(token, self.secret)
        except TicketSecurityError as e:
            logger.warning(f"Rejected ticket: {e.reason.value}")
            raise

        now = self.clock().timestamp()
        if now > payload.exp:
            logger.warning(
                f"Expired ticket {_prefix(payload.jti)}, expired at {datetime.fromtimestamp(payload.exp).isoformat()}"
            )
            raise TicketExpiredError()

        record = ticketRepo.get_ticket_by_id(db, payload.jti)
        if record is None:
            logger.warning(f"Ticket with unknown jti {_prefix(payload.jti)}")
            raise TicketSecurityError(TicketRejection.UNKNOWN)
        return payload, record

    def validate(self, db: Session, token: str) -> TicketPayload:
        """
        Check a token without consuming it

        Returns:
            TicketPayload of a signed, unexpired, known and unused ticket

        Raises:
            TicketSecurityError: malformed, bad signature, unknown jti or replay
            TicketExpiredError: past ``exp`` or revoked by a reissue
        """
        try:
            payload, record = self._verify(db, token)
            if record.used:
                logger.warning(f"Replay attempt detected for jti {_prefix(record.id)}")
                raise TicketSecurityError(TicketRejection.REPLAY)
            if record.revoked_at is not None:
                logger.warning(f"Revoked ticket {_prefix(record.id)} presented")
                raise TicketExpiredError(TicketRejection.REVOKED)
        except TicketError as e:
            self.observer.ticket_validated(False, e.reason.value)
            raise
        self.observer.ticket_validated(True)
        return payload

    def _already_processed(self, record: Ticket) -> RedemptionResult:
        return RedemptionResult(
            success=True,
            message="Attendance was already registered",
            already_processed=True,
            processed_at=ensure_utc(record.used_at),
            enrollment_id=record.enrollment_id,
        )

    def redeem(self, db: Session, token: str, staff_id, activity_id=None) -> RedemptionResult:
        """
        Consume a ticket and mark the enrollment as attended

        A ticket that was already consumed, by an earlier scan or by a
        concurrent one that won the compare-and-set, answers with
        ``already_processed=True`` and the original ``used_at``.

        ``activity_id`` is ignored, the signed payload already names it.

        Raises:
            TicketSecurityError, TicketExpiredError: same reasons as ``validate``
            EnrollmentNotFoundError: the enrollment was cancelled after issuance
        """
        staff_uuid = to_uuid(staff_id, "staff_id")
        try:
            payload, record = self._verify(db, token)
            if record.revoked_at is not None and not record.used:
                logger.warning(f"Revoked ticket {_prefix(record.id)} presented")
                raise TicketExpiredError(TicketRejection.REVOKED)
        except TicketError as e:
            self.observer.ticket_validated(False, e.reason.value)
            raise
        self.observer.ticket_validated(True)
        if record.used:
            return self._already_processed(record)

        user_uuid = uuid.UUID(payload.sub)
        activity_uuid = uuid.UUID(payload.act)
        now = self.clock()
        try:
            if not ticketRepo.mark_ticket_used(db, payload.jti, used_at=now, used_by=staff_uuid):
                db.rollback()
                winner = ticketRepo.get_ticket_by_id(db, payload.jti)
                logger.info(f"Ticket {_prefix(payload.jti)} was redeemed concurrently")
                return self._already_processed(winner)

            enrollment = enrollmentRepo.get_enrollment_by_user_and_activity(
                db, user_uuid, activity_uuid
            )
            if enrollment is None:
                db.rollback()
                logger.warning(
                    f"Valid ticket {_prefix(payload.jti)} has no enrollment for user {user_uuid}, activity {activity_uuid}"
                )
                raise EnrollmentNotFoundError("Enrollment not found for this code")

            enrollmentRepo.mark_attended(db, enrollment.id, attended_at=now, is_commit=False)
            db.commit()
        except DomainError:
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Error redeeming ticket {_prefix(payload.jti)}")
            raise

        logger.info(
            f"Ticket {_prefix(payload.jti)} redeemed for user {user_uuid}, activity {activity_uuid} by staff {staff_uuid}"
        )
        return RedemptionResult(
            success=True,
            message="Attendance registered successfully",
            already_processed=False,
            processed_at=ensure_utc(now),
            enrollment_id=enrollment.id,
        )


secure_ticket_service = SecureTicketService(
    secret=TICKET_SECRET,
    ttl_seconds=TICKET_TTL_SECONDS,
    reissue_policy=TICKET_REISSUE_POLICY,
    observer=metrics_observer,
)
