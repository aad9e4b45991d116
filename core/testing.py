"""Shared setup of database backed test cases."""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from unittest import TestCase

import pytz

from core.metrics import TicketingObserver
from core.security import generate_hash_password, generate_token_from_user
from models import Base, db, engine
from models.Activity import Activity
from models.User import PARTICIPANT, User
from repository import activity as activityRepo
from repository import user as userRepo

TEST_SECRET = "unit-test-secret-abcdefghijklmnopqrstuvwxyz-0123"
BASE_TIME = datetime(2026, 11, 12, 8, 0, tzinfo=pytz.utc)


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    """Datetime on the congress' first day, shifted by ``day`` days."""
    return BASE_TIME.replace(hour=hour, minute=minute) + timedelta(days=day)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingObserver(TicketingObserver):
    def __init__(self):
        self.admissions: List[str] = []
        self.issued: List[bool] = []
        self.validated: List[Tuple[bool, Optional[str]]] = []
        self.scanned: List[Tuple[bool, bool]] = []

    def admission(self, outcome: str) -> None:
        self.admissions.append(outcome)

    def ticket_issued(self, success: bool) -> None:
        self.issued.append(success)

    def ticket_validated(self, valid: bool, reason: Optional[str] = None) -> None:
        self.validated.append((valid, reason))

    def ticket_scanned(self, success: bool, secure: bool) -> None:
        self.scanned.append((success, secure))


class DatabaseTestCase(TestCase):
    """Fresh schema per test; services commit, so no outer transaction is used."""

    def setUp(self) -> None:
        Base.metadata.drop_all(engine)
        Base.metadata.create_all(engine)
        self.db = db()

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(engine)

    def create_user(
        self, participant_type: str = PARTICIPANT, name: Optional[str] = None
    ) -> User:
        name = name or f"user-{uuid.uuid4().hex[:8]}"
        return userRepo.create_user(
            db=self.db,
            username=name,
            email=f"{name}@example.com",
            password=generate_hash_password("password"),
            first_name=name,
            last_name="Tester",
            is_active=True,
            participant_type=participant_type,
        )

    def create_activity(
        self,
        title: str = "Activity",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        capacity: Optional[int] = None,
        published: bool = True,
    ) -> Activity:
        return activityRepo.insert_activity(
            db=self.db,
            title=title,
            start=start,
            end=end,
            capacity=capacity,
            published=published,
        )

    def login(self, user: User) -> str:
        return generate_token_from_user(db=self.db, user=user)

    def new_session(self):
        return db()
