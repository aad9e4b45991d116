import threading
import uuid
from unittest.mock import patch

from sqlalchemy import select

from core.enrollment_scheduler import (
    STATUS_ALMOST_FULL,
    STATUS_AVAILABLE,
    STATUS_FEW_SPOTS,
    STATUS_FULL,
    STATUS_UNLIMITED,
    EnrollmentScheduler,
    activities_overlap,
)
from core.exceptions import (
    CapacityExceededError,
    DuplicateEnrollmentError,
    EnrollmentForbiddenError,
    EnrollmentNotFoundError,
    ErrorCode,
    InvalidRequestError,
    TimeConflictError,
)
from core.locks import AdmissionLockRegistry
from core.notifier import EnrollmentNotifier
from core.secure_ticket import SecureTicketService
from core.testing import TEST_SECRET, DatabaseTestCase, RecordingObserver, at
from models.Activity import Activity
from models.Enrollment import Enrollment
from models.User import ORGANIZER_PARTICIPANT
from repository import activity as activityRepo
from repository import enrollment as enrollmentRepo


class RecordingNotifier(EnrollmentNotifier):
    def __init__(self):
        self.calls = []

    def notify_enrollment_confirmed(self, user, enrollments):
        self.calls.append((user.id, enrollments))


class BrokenNotifier(EnrollmentNotifier):
    def notify_enrollment_confirmed(self, user, enrollments):
        raise RuntimeError("smtp is down")


class TestEnrollmentScheduler(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.observer = RecordingObserver()
        self.tickets = SecureTicketService(secret=TEST_SECRET, ttl_seconds=3600)
        self.scheduler = EnrollmentScheduler(
            ticket_service=self.tickets,
            locks=AdmissionLockRegistry(),
            observer=self.observer,
        )
        self.user = self.create_user()

    def _enrollments(self):
        with self.new_session() as session:
            return list(session.execute(select(Enrollment)).scalars().all())

    def test_admit_batch(self):
        talk = self.create_activity("Talk", start=at(9), end=at(10))
        workshop = self.create_activity("Workshop", start=at(10), end=at(12), capacity=20)
        notifier = RecordingNotifier()

        results = self.scheduler.admit_batch(
            self.db, self.user.id, [str(workshop.id), str(talk.id)], notifier=notifier
        )

        self.assertEqual([r.activity_id for r in results], [workshop.id, talk.id])
        self.assertTrue(all(r.seat_number == 1 for r in results))
        self.assertTrue(all(r.token and not r.ticket_pending for r in results))
        for r in results:
            payload = self.tickets.validate(self.db, r.token)
            self.assertEqual(payload.act, str(r.activity_id))
            self.assertEqual(payload.sub, str(self.user.id))

        self.assertEqual(len(notifier.calls), 1)
        user_id, confirmed = notifier.calls[0]
        self.assertEqual(user_id, self.user.id)
        self.assertEqual([c.seat_number for c in confirmed], [1, 1])
        self.assertEqual([c.ticket_token for c in confirmed], [r.token for r in results])
        self.assertEqual(self.observer.admissions, ["admitted"])

    def test_overlap_inside_batch_creates_nothing(self):
        a = self.create_activity("A", start=at(10), end=at(12))
        b = self.create_activity("B", start=at(11), end=at(13))

        with self.assertRaises(TimeConflictError) as ctx:
            self.scheduler.admit_batch(self.db, self.user.id, [a.id, b.id])

        self.assertEqual({ctx.exception.activity_id, ctx.exception.with_activity_id}, {str(a.id), str(b.id)})
        self.assertEqual(self._enrollments(), [])
        self.assertEqual(self.observer.admissions, ["time_conflict"])

    def test_overlap_with_existing_enrollment(self):
        morning = self.create_activity("Morning", start=at(9), end=at(11))
        clash = self.create_activity("Clash", start=at(10, 30), end=at(11, 30))
        free = self.create_activity("Free", start=at(14), end=at(15))
        self.scheduler.admit_batch(self.db, self.user.id, [morning.id])

        with self.assertRaises(TimeConflictError) as ctx:
            self.scheduler.admit_batch(self.db, self.user.id, [free.id, clash.id])
        self.assertEqual(ctx.exception.activity_id, str(clash.id))
        self.assertEqual(ctx.exception.with_activity_id, str(morning.id))
        self.assertEqual(len(self._enrollments()), 1)

    def test_back_to_back_and_untimed_activities_do_not_conflict(self):
        first = self.create_activity("First", start=at(9), end=at(10))
        second = self.create_activity("Second", start=at(10), end=at(11))
        fair = self.create_activity("Fair")
        half_timed = self.create_activity("Half", start=at(9))

        results = self.scheduler.admit_batch(
            self.db, self.user.id, [first.id, second.id, fair.id, half_timed.id]
        )
        self.assertEqual(len(results), 4)

    def test_overlap_rule(self):
        def activity(start, end):
            return Activity(title="x", start=start, end=end)

        self.assertTrue(activities_overlap(activity(at(9), at(11)), activity(at(10), at(12))))
        self.assertTrue(activities_overlap(activity(at(9), at(12)), activity(at(10), at(11))))
        self.assertFalse(activities_overlap(activity(at(9), at(10)), activity(at(10), at(11))))
        self.assertFalse(activities_overlap(activity(at(9), at(10)), activity(at(11), at(12))))
        self.assertFalse(activities_overlap(activity(None, at(10)), activity(at(9), at(11))))
        self.assertFalse(activities_overlap(activity(at(9), at(10)), activity(at(9, 30), None)))

    def test_duplicate_enrollment(self):
        talk = self.create_activity("Talk", start=at(9), end=at(10))
        other = self.create_activity("Other", start=at(15), end=at(16))
        self.scheduler.admit_batch(self.db, self.user.id, [talk.id])

        with self.assertRaises(DuplicateEnrollmentError) as ctx:
            self.scheduler.admit_batch(self.db, self.user.id, [other.id, talk.id])
        self.assertEqual(ctx.exception.activity_ids, [str(talk.id)])
        # all or nothing: "other" was not admitted either
        self.assertEqual(len(self._enrollments()), 1)

    def test_invalid_requests(self):
        talk = self.create_activity("Talk")
        cases = [
            (self.user.id, [], ErrorCode.INVALID_REQUEST),
            (self.user.id, [talk.id, str(talk.id)], ErrorCode.INVALID_REQUEST),
            (self.user.id, ["not-an-id"], ErrorCode.INVALID_REQUEST),
            (self.user.id, [uuid.uuid4()], ErrorCode.ACTIVITY_NOT_FOUND),
            (uuid.uuid4(), [talk.id], ErrorCode.USER_NOT_FOUND),
        ]
        for user_id, activity_ids, code in cases:
            with self.assertRaises(InvalidRequestError, msg=code) as ctx:
                self.scheduler.admit_batch(self.db, user_id, activity_ids)
            self.assertEqual(ctx.exception.code, code)
        self.assertEqual(self._enrollments(), [])

    def test_capacity_exceeded_rolls_back_the_batch(self):
        open_talk = self.create_activity("Open", start=at(9), end=at(10))
        full = self.create_activity("Full", start=at(11), end=at(12), capacity=1)
        self.scheduler.admit_batch(self.db, self.create_user().id, [full.id])

        with self.assertRaises(CapacityExceededError) as ctx:
            self.scheduler.admit_batch(self.db, self.user.id, [open_talk.id, full.id])
        self.assertEqual(ctx.exception.activity_id, str(full.id))
        self.assertEqual(len(self._enrollments()), 1)
        self.assertEqual(self.observer.admissions[-1], "capacity_exceeded")

    def test_last_seat_under_concurrency(self):
        activity = self.create_activity("Single seat", start=at(9), end=at(10), capacity=1)
        users = [self.create_user() for _ in range(2)]
        self._race(activity, users, expected_admitted=1)

    def test_capacity_is_never_exceeded_under_concurrency(self):
        activity = self.create_activity("Popular", start=at(9), end=at(10), capacity=5)
        users = [self.create_user() for _ in range(12)]
        self._race(activity, users, expected_admitted=5)

    def _race(self, activity, users, expected_admitted):
        activity_id = activity.id
        user_ids = [u.id for u in users]
        barrier = threading.Barrier(len(user_ids))
        admitted, refused, errors = [], [], []

        def enroll(user_id):
            session = self.new_session()
            try:
                barrier.wait()
                admitted.extend(self.scheduler.admit_batch(session, user_id, [activity_id]))
            except CapacityExceededError as e:
                refused.append(e)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=enroll, args=(u,)) for u in user_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(admitted), expected_admitted)
        self.assertEqual(len(refused), len(user_ids) - expected_admitted)
        seats = sorted(r.seat_number for r in admitted)
        self.assertEqual(seats, list(range(1, expected_admitted + 1)))
        with self.new_session() as session:
            self.assertEqual(enrollmentRepo.count_live_enrollments(session, activity_id), expected_admitted)

    def test_same_user_overlapping_admissions_are_serialised(self):
        morning = self.create_activity("Morning talk", start=at(9), end=at(10))
        overlapping = self.create_activity("Overlapping talk", start=at(9, 30), end=at(10, 30))
        user_id = self.user.id
        # both requests would pass the overlap check if they read enrollments together
        barrier = threading.Barrier(2, timeout=2)
        read_enrollments = enrollmentRepo.get_enrollments_by_user_id

        def read_then_wait(db, uid):
            existing = read_enrollments(db, uid)
            try:
                barrier.wait()
            except threading.BrokenBarrierError:
                pass
            return existing

        admitted, conflicts, errors = [], [], []

        def enroll(activity_id):
            session = self.new_session()
            try:
                admitted.extend(self.scheduler.admit_batch(session, user_id, [activity_id]))
            except TimeConflictError as e:
                conflicts.append(e)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        with patch.object(enrollmentRepo, "get_enrollments_by_user_id", read_then_wait):
            threads = [
                threading.Thread(target=enroll, args=(a,)) for a in (morning.id, overlapping.id)
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(admitted), 1)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(len(self._enrollments()), 1)

    def test_cancel_locks_the_activity_row(self):
        talk = self.create_activity("Talk", start=at(9), end=at(10))
        enrollment_id = self.scheduler.admit_batch(self.db, self.user.id, [talk.id])[0].enrollment_id

        with patch.object(
            activityRepo, "lock_activities_by_ids", wraps=activityRepo.lock_activities_by_ids
        ) as lock_rows:
            self.scheduler.cancel_enrollment(self.db, enrollment_id, self.user.id)

        lock_rows.assert_called_once_with(self.db, [talk.id])
        self.assertEqual(self._enrollments(), [])

    def test_seats_are_not_reused_after_cancellation(self):
        activity = self.create_activity("Talk", start=at(9), end=at(10), capacity=3)
        users = [self.create_user() for _ in range(3)]
        results = [self.scheduler.admit_batch(self.db, u.id, [activity.id])[0] for u in users]
        self.scheduler.cancel_enrollment(self.db, results[0].enrollment_id, users[0].id)

        late = self.scheduler.admit_batch(self.db, self.user.id, [activity.id])[0]
        self.assertEqual(late.seat_number, 4)
        seats = [e.seat_number for e in self._enrollments()]
        self.assertEqual(len(seats), len(set(seats)))

    def test_ticket_failure_leaves_admission_and_pending_ticket(self):
        published = self.create_activity("Published", start=at(9), end=at(10))
        draft = self.create_activity("Draft", start=at(11), end=at(12), published=False)

        results = self.scheduler.admit_batch(self.db, self.user.id, [published.id, draft.id])

        self.assertFalse(results[0].ticket_pending)
        self.assertTrue(results[1].ticket_pending)
        self.assertIsNone(results[1].token)
        self.assertEqual(len(self._enrollments()), 2)

        draft = self.db.get(Activity, draft.id)
        draft.published = True
        self.db.commit()
        retried = self.scheduler.retry_pending_tickets(self.db, user_id=self.user.id)
        self.assertEqual(len(retried), 1)
        self.assertFalse(retried[0].ticket_pending)
        self.assertEqual(retried[0].enrollment_id, results[1].enrollment_id)
        self.assertEqual(self.scheduler.retry_pending_tickets(self.db), [])

    def test_notifier_failure_does_not_undo_admission(self):
        talk = self.create_activity("Talk", start=at(9), end=at(10))
        results = self.scheduler.admit_batch(
            self.db, self.user.id, [talk.id], notifier=BrokenNotifier()
        )
        self.assertEqual(len(results), 1)
        self.assertEqual(len(self._enrollments()), 1)

    def test_cancel_enrollment_permissions(self):
        talk = self.create_activity("Talk", start=at(9), end=at(10))
        enrollment_id = self.scheduler.admit_batch(self.db, self.user.id, [talk.id])[0].enrollment_id
        stranger = self.create_user()
        organizer = self.create_user(participant_type=ORGANIZER_PARTICIPANT)

        with self.assertRaises(EnrollmentForbiddenError):
            self.scheduler.cancel_enrollment(self.db, enrollment_id, stranger.id)
        self.scheduler.cancel_enrollment(self.db, enrollment_id, organizer.id, is_staff=True)
        self.assertEqual(self._enrollments(), [])
        with self.assertRaises(EnrollmentNotFoundError):
            self.scheduler.cancel_enrollment(self.db, enrollment_id, self.user.id)

    def test_find_time_conflicts(self):
        a = self.create_activity("A", start=at(9), end=at(11))
        b = self.create_activity("B", start=at(10), end=at(12))
        c = self.create_activity("C", start=at(13), end=at(14))

        conflicts = self.scheduler.find_time_conflicts(self.db, [a.id, b.id, c.id])
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].activity_id, str(a.id))
        self.assertEqual(conflicts[0].with_activity_id, str(b.id))
        self.assertIn("'A'", conflicts[0].description)
        self.assertEqual(self.scheduler.find_time_conflicts(self.db, [a.id, c.id]), [])
        self.assertEqual(self.scheduler.find_time_conflicts(self.db, []), [])

    def test_find_conflict_with_enrollments(self):
        morning = self.create_activity("Morning", start=at(9), end=at(11))
        clash = self.create_activity("Clash", start=at(10), end=at(12))
        later = self.create_activity("Later", start=at(14), end=at(15))
        self.scheduler.admit_batch(self.db, self.user.id, [morning.id])

        found = self.scheduler.find_conflict_with_enrollments(self.db, self.user.id, clash.id)
        self.assertEqual(found.id, morning.id)
        self.assertIsNone(self.scheduler.find_conflict_with_enrollments(self.db, self.user.id, later.id))

    def test_capacity_status(self):
        unlimited = self.create_activity("Unlimited")
        small = self.create_activity("Small", start=at(9), end=at(10), capacity=4)
        for _ in range(3):
            self.scheduler.admit_batch(self.db, self.create_user().id, [small.id])

        status = {
            s.activity_title: s
            for s in self.scheduler.capacity_status(self.db, [unlimited.id, small.id])
        }
        self.assertEqual(status["Unlimited"].status, STATUS_UNLIMITED)
        self.assertFalse(status["Unlimited"].has_capacity_limit)
        self.assertEqual(status["Small"].current_enrollments, 3)
        self.assertEqual(status["Small"].available_spots, 1)
        self.assertEqual(status["Small"].capacity_percentage, 75.0)
        self.assertEqual(status["Small"].status, STATUS_FEW_SPOTS)

        self.scheduler.admit_batch(self.db, self.create_user().id, [small.id])
        full = self.scheduler.capacity_status(self.db, [small.id])[0]
        self.assertTrue(full.is_full)
        self.assertEqual(full.status, STATUS_FULL)

    def test_capacity_labels(self):
        activity = self.create_activity("Big", start=at(9), end=at(10), capacity=10)
        for _ in range(5):
            self.scheduler.admit_batch(self.db, self.create_user().id, [activity.id])
        self.assertEqual(self.scheduler.capacity_status(self.db, [activity.id])[0].status, STATUS_AVAILABLE)
        for _ in range(4):
            self.scheduler.admit_batch(self.db, self.create_user().id, [activity.id])
        self.assertEqual(self.scheduler.capacity_status(self.db, [activity.id])[0].status, STATUS_ALMOST_FULL)
