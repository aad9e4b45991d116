import datetime
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, joinedload

from models.Activity import Activity
from models.Enrollment import Enrollment


def count_live_enrollments(db: Session, activity_id: uuid.UUID) -> int:
    stmt = select(func.count(Enrollment.id)).where(Enrollment.activity_id == activity_id)
    return db.execute(stmt).scalar() or 0


def get_highest_seat_number(db: Session, activity_id: uuid.UUID) -> int:
    stmt = select(func.max(Enrollment.seat_number)).where(
        Enrollment.activity_id == activity_id
    )
    return db.execute(stmt).scalar() or 0


def count_attended(db: Session, activity_id: uuid.UUID) -> int:
    stmt = select(func.count(Enrollment.id)).where(
        Enrollment.activity_id == activity_id, Enrollment.attended.is_(True)
    )
    return db.execute(stmt).scalar() or 0


def get_enrollment_by_id(db: Session, enrollment_id: uuid.UUID) -> Optional[Enrollment]:
    stmt = select(Enrollment).where(Enrollment.id == enrollment_id)
    return db.execute(stmt).scalar()


def get_enrollment_by_user_and_activity(
    db: Session, user_id: uuid.UUID, activity_id: uuid.UUID
) -> Optional[Enrollment]:
    stmt = select(Enrollment).where(
        Enrollment.user_id == user_id, Enrollment.activity_id == activity_id
    )
    return db.execute(stmt).scalar()


def get_enrollments_by_user_id(db: Session, user_id: uuid.UUID) -> List[Enrollment]:
    """Live enrollments of a user with their activities loaded

    Args:
        db (Session): Database session
        user_id (uuid.UUID): User ID

    Returns:
        List[Enrollment]: Enrollments ordered by activity start
    """
    stmt = (
        select(Enrollment)
        .options(joinedload(Enrollment.activity))
        .join(Activity, Activity.id == Enrollment.activity_id)
        .where(Enrollment.user_id == user_id)
        .order_by(Activity.start.asc())
    )
    return list(db.execute(stmt).scalars().unique().all())


def get_enrollments_by_activity_id(
    db: Session, activity_id: uuid.UUID
) -> List[Enrollment]:
    stmt = (
        select(Enrollment)
        .options(joinedload(Enrollment.user))
        .where(Enrollment.activity_id == activity_id)
        .order_by(Enrollment.attended.desc(), Enrollment.seat_number.asc())
    )
    return list(db.execute(stmt).scalars().unique().all())


def get_enrollments_without_ticket(
    db: Session, user_id: Optional[uuid.UUID] = None
) -> List[Enrollment]:
    stmt = select(Enrollment).where(Enrollment.ticket_id.is_(None))
    if user_id is not None:
        stmt = stmt.where(Enrollment.user_id == user_id)
    stmt = stmt.order_by(Enrollment.created_at.asc())
    return list(db.execute(stmt).scalars().all())


def get_user_enrollments_starting_between(
    db: Session,
    user_id: uuid.UUID,
    start: datetime.datetime,
    end: datetime.datetime,
) -> List[Enrollment]:
    """Enrollments of a user whose activity starts in ``[start, end)``

    Args:
        db (Session): Database session
        user_id (uuid.UUID): User ID
        start (datetime.datetime): inclusive lower bound
        end (datetime.datetime): exclusive upper bound

    Returns:
        List[Enrollment]: Enrollments ordered by activity start
    """
    stmt = (
        select(Enrollment)
        .options(joinedload(Enrollment.activity))
        .join(Activity, Activity.id == Enrollment.activity_id)
        .where(
            Enrollment.user_id == user_id,
            Activity.start >= start,
            Activity.start < end,
        )
        .order_by(Activity.start.asc())
    )
    return list(db.execute(stmt).scalars().unique().all())


def create_enrollment(
    db: Session,
    user_id: uuid.UUID,
    activity_id: uuid.UUID,
    seat_number: int,
    is_commit: bool = True,
) -> Enrollment:
    enrollment = Enrollment(
        user_id=user_id,
        activity_id=activity_id,
        seat_number=seat_number,
        attended=False,
        created_at=datetime.datetime.now(datetime.timezone.utc),
    )
    db.add(enrollment)
    db.flush()
    if is_commit:
        db.commit()
        db.refresh(enrollment)
    return enrollment


def set_ticket_reference(
    db: Session, enrollment_id: uuid.UUID, ticket_id: str, is_commit: bool = True
) -> None:
    stmt = (
        update(Enrollment)
        .where(Enrollment.id == enrollment_id)
        .values(ticket_id=ticket_id)
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    if is_commit:
        db.commit()


def mark_attended(
    db: Session,
    enrollment_id: uuid.UUID,
    attended_at: datetime.datetime,
    is_commit: bool = True,
) -> bool:
    """Flip ``attended`` from false to true

    Args:
        db (Session): Database session
        enrollment_id (uuid.UUID): Enrollment ID
        attended_at (datetime.datetime): time stored with the first check-in

    Returns:
        bool: False when the enrollment was already attended or is gone
    """
    stmt = (
        update(Enrollment)
        .where(Enrollment.id == enrollment_id, Enrollment.attended.is_(False))
        .values(attended=True, attended_at=attended_at)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if is_commit:
        db.commit()
    return result.rowcount == 1


def delete_enrollment(db: Session, enrollment_id: uuid.UUID, is_commit: bool = True) -> bool:
    stmt = delete(Enrollment).where(Enrollment.id == enrollment_id)
    result = db.execute(stmt)
    if is_commit:
        db.commit()
    return result.rowcount == 1
