import uuid

from core.attendance import AttendanceScanner, attendance_for_activity, attendance_stats
from core.exceptions import (
    ErrorCode,
    InvalidRequestError,
    TicketExpiredError,
    TicketRejection,
    TicketSecurityError,
)
from core.legacy_ticket import LegacyTicketAdapter, generate_legacy_token
from core.redemption import RedemptionResult, TicketRedeemer
from core.secure_ticket import SecureTicketService
from core.testing import BASE_TIME, TEST_SECRET, DatabaseTestCase, FixedClock, RecordingObserver, at
from models.User import VOLUNTEER_PARTICIPANT
from repository import enrollment as enrollmentRepo
from schemas.ticket import TicketFormat


class SpyRedeemer(TicketRedeemer):
    def __init__(self):
        self.tokens = []

    def redeem(self, db, token, staff_id, activity_id=None):
        self.tokens.append(token)
        return RedemptionResult(success=True, message="spy")


class TestAttendanceScanner(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.clock = FixedClock(BASE_TIME)
        self.observer = RecordingObserver()
        self.secure = SecureTicketService(secret=TEST_SECRET, ttl_seconds=3600, clock=self.clock)
        self.legacy = LegacyTicketAdapter(prefix="CONGRESO2024", clock=self.clock)
        self.scanner = AttendanceScanner(self.secure, self.legacy, observer=self.observer)

        self.participant = self.create_user()
        self.staff = self.create_user(participant_type=VOLUNTEER_PARTICIPANT)
        self.activity = self.create_activity("Keynote", start=at(9), end=at(10), capacity=4)
        self.enrollment = enrollmentRepo.create_enrollment(
            self.db, self.participant.id, self.activity.id, seat_number=1
        )

    def test_signed_ticket(self):
        ticket = self.secure.issue(self.db, self.participant.id, self.activity.id)
        scanned = self.scanner.scan(self.db, f"  {ticket.token}\n", self.staff.id)

        self.assertEqual(scanned.format, TicketFormat.secure)
        self.assertTrue(scanned.result.success)
        self.assertFalse(scanned.result.already_processed)
        self.assertEqual(self.observer.scanned, [(True, True)])

    def test_legacy_ticket(self):
        token = generate_legacy_token(self.participant.id, BASE_TIME)
        scanned = self.scanner.scan(self.db, token, self.staff.id, self.activity.id)

        self.assertEqual(scanned.format, TicketFormat.legacy)
        self.assertEqual(scanned.result.enrollment_id, self.enrollment.id)
        self.assertEqual(self.observer.scanned, [(True, False)])

    def test_expired_signed_ticket_does_not_fall_back(self):
        spy = SpyRedeemer()
        scanner = AttendanceScanner(self.secure, spy, observer=self.observer)
        ticket = self.secure.issue(self.db, self.participant.id, self.activity.id)
        self.clock.advance(3601)

        with self.assertRaises(TicketExpiredError):
            scanner.scan(self.db, ticket.token, self.staff.id)
        self.assertEqual(spy.tokens, [])
        self.assertEqual(self.observer.scanned, [(False, True)])

    def test_forged_signed_ticket_does_not_fall_back(self):
        spy = SpyRedeemer()
        scanner = AttendanceScanner(self.secure, spy)
        other = SecureTicketService(secret="f" * 48, clock=self.clock)
        forged = other.issue(self.db, self.participant.id, self.activity.id)

        with self.assertRaises(TicketSecurityError) as ctx:
            scanner.scan(self.db, forged.token, self.staff.id)
        self.assertEqual(ctx.exception.reason, TicketRejection.SIGNATURE)
        self.assertEqual(spy.tokens, [])

    def test_replayed_signed_ticket_is_reported_as_processed(self):
        spy = SpyRedeemer()
        scanner = AttendanceScanner(self.secure, spy)
        ticket = self.secure.issue(self.db, self.participant.id, self.activity.id)
        scanner.scan(self.db, ticket.token, self.staff.id)

        again = scanner.scan(self.db, ticket.token, self.staff.id)
        self.assertTrue(again.result.already_processed)
        self.assertEqual(again.format, TicketFormat.secure)
        self.assertEqual(spy.tokens, [])

    def test_only_malformed_codes_reach_the_legacy_redeemer(self):
        spy = SpyRedeemer()
        scanner = AttendanceScanner(self.secure, spy)
        scanned = scanner.scan(self.db, " whatever-was-printed ", self.staff.id)
        self.assertEqual(scanned.format, TicketFormat.legacy)
        self.assertEqual(spy.tokens, ["whatever-was-printed"])

    def test_garbage_is_rejected_by_both_formats(self):
        with self.assertRaises(TicketSecurityError) as ctx:
            self.scanner.scan(self.db, "hello", self.staff.id)
        self.assertEqual(ctx.exception.reason, TicketRejection.MALFORMED)
        self.assertEqual(self.observer.scanned, [(False, False)])

    def test_legacy_disabled(self):
        scanner = AttendanceScanner(self.secure, None, observer=self.observer)
        token = generate_legacy_token(self.participant.id, BASE_TIME)
        with self.assertRaises(TicketSecurityError) as ctx:
            scanner.scan(self.db, token, self.staff.id, self.activity.id)
        self.assertEqual(ctx.exception.reason, TicketRejection.MALFORMED)
        self.assertFalse(enrollmentRepo.get_enrollment_by_id(self.db, self.enrollment.id).attended)

    def test_attendance_list_and_stats(self):
        late = self.create_user()
        enrollmentRepo.create_enrollment(self.db, late.id, self.activity.id, seat_number=2)
        ticket = self.secure.issue(self.db, self.participant.id, self.activity.id)
        self.scanner.scan(self.db, ticket.token, self.staff.id)

        listed = attendance_for_activity(self.db, self.activity.id)
        self.assertEqual([e.user_id for e in listed], [self.participant.id, late.id])
        self.assertTrue(listed[0].attended)

        stats = attendance_stats(self.db, str(self.activity.id))
        self.assertEqual(stats.total_enrolled, 2)
        self.assertEqual(stats.total_attended, 1)
        self.assertEqual(stats.attendance_rate, 50.0)
        self.assertEqual(stats.capacity, 4)
        self.assertEqual(stats.capacity_utilization, 50.0)

    def test_stats_without_enrollments(self):
        empty = self.create_activity("Empty")
        stats = attendance_stats(self.db, empty.id)
        self.assertEqual(stats.attendance_rate, 0.0)
        self.assertIsNone(stats.capacity_utilization)

    def test_unknown_activity(self):
        with self.assertRaises(InvalidRequestError) as ctx:
            attendance_stats(self.db, uuid.uuid4())
        self.assertEqual(ctx.exception.code, ErrorCode.ACTIVITY_NOT_FOUND)
