import uuid
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.Activity import Activity, ActivityType


def get_activity_by_id(db: Session, activity_id: uuid.UUID) -> Optional[Activity]:
    stmt = select(Activity).where(Activity.id == activity_id)
    return db.execute(stmt).scalar()


def get_available_activity_by_id(
    db: Session, activity_id: uuid.UUID
) -> Optional[Activity]:
    stmt = select(Activity).where(
        Activity.id == activity_id,
        Activity.is_active.is_(True),
        Activity.published.is_(True),
    )
    return db.execute(stmt).scalar()


def get_activities_by_ids(
    db: Session, activity_ids: Sequence[uuid.UUID]
) -> List[Activity]:
    stmt = select(Activity).where(Activity.id.in_(activity_ids)).order_by(Activity.id)
    return list(db.execute(stmt).scalars().all())


def lock_activities_by_ids(
    db: Session, activity_ids: Sequence[uuid.UUID]
) -> List[Activity]:
    """Load and row-lock activities in id order for the rest of the transaction."""
    stmt = (
        select(Activity)
        .where(Activity.id.in_(activity_ids))
        .order_by(Activity.id)
        .with_for_update()
    )
    return list(db.execute(stmt).scalars().all())


def insert_activity(
    db: Session,
    title: str,
    start=None,
    end=None,
    capacity: Optional[int] = None,
    activity_type: str = ActivityType.TALK,
    location: Optional[str] = None,
    description: Optional[str] = None,
    is_active: bool = True,
    published: bool = True,
    id: Optional[uuid.UUID] = None,
    is_commit: bool = True,
) -> Activity:
    activity = Activity(
        id=id or uuid.uuid4(),
        title=title,
        description=description,
        location=location,
        activity_type=activity_type,
        start=start,
        end=end,
        capacity=capacity,
        is_active=is_active,
        published=published,
    )
    db.add(activity)
    db.flush()
    if is_commit:
        db.commit()
        db.refresh(activity)
    return activity
