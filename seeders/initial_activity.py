import uuid
from datetime import datetime

import pytz
from sqlalchemy import select
from sqlalchemy.orm import Session

from models.Activity import Activity, ActivityType


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return pytz.timezone("America/Guatemala").localize(
        datetime(2026, 11, day, hour, minute)
    ).astimezone(pytz.utc)


def initial_activity(db: Session, is_commit: bool = True):
    activities = [
        Activity(
            id=uuid.UUID("0198f3c1-2a4e-7b11-9c1d-6e2f1a0b3c01"),
            title="Opening keynote",
            activity_type=ActivityType.TALK,
            location="Auditorium",
            start=_at(12, 8),
            end=_at(12, 9, 30),
            capacity=None,
        ),
        Activity(
            id=uuid.UUID("0198f3c1-2a4e-7b11-9c1d-6e2f1a0b3c02"),
            title="Hands-on FastAPI",
            activity_type=ActivityType.WORKSHOP,
            location="Lab #1",
            start=_at(12, 10),
            end=_at(12, 12),
            capacity=30,
        ),
        Activity(
            id=uuid.UUID("0198f3c1-2a4e-7b11-9c1d-6e2f1a0b3c03"),
            title="Data pipelines with SQL",
            activity_type=ActivityType.WORKSHOP,
            location="Lab #2",
            start=_at(12, 11),
            end=_at(12, 13),
            capacity=25,
        ),
        Activity(
            id=uuid.UUID("0198f3c1-2a4e-7b11-9c1d-6e2f1a0b3c04"),
            title="Programming contest",
            activity_type=ActivityType.COMPETITION,
            location="Lab #3",
            start=_at(13, 9),
            end=_at(13, 13),
            capacity=40,
        ),
        Activity(
            id=uuid.UUID("0198f3c1-2a4e-7b11-9c1d-6e2f1a0b3c05"),
            title="Career fair",
            activity_type=ActivityType.OTHER,
            location="Main hall",
            capacity=None,
        ),
    ]

    for activity in activities:
        stmt = select(Activity).where(Activity.id == activity.id)
        existing = db.execute(stmt).scalar()
        if not existing:
            db.add(activity)
        else:
            existing.title = activity.title
            existing.location = activity.location
            existing.start = activity.start
            existing.end = activity.end
            existing.capacity = activity.capacity

    if is_commit:
        db.commit()
