import datetime
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.User import PARTICIPANT, User


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    stmt = select(User).where(User.username == username)
    data = db.execute(stmt).scalar()
    return data


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    stmt = select(User).where(User.email == email)
    data = db.execute(stmt).scalar()
    return data


def get_user_by_id(db: Session, id: uuid.UUID) -> Optional[User]:
    stmt = select(User).where(User.id == id)
    return db.execute(stmt).scalar()


def create_user(
    db: Session,
    username: str = None,
    password: str = None,
    is_active: bool = False,
    first_name: str = None,
    last_name: str = None,
    email: str = None,
    participant_type: str = PARTICIPANT,
    is_commit: bool = True,
) -> User:
    now = datetime.datetime.now(datetime.timezone.utc)
    user = User(
        username=username,
        password=password,
        is_active=is_active,
        first_name=first_name,
        last_name=last_name,
        email=email,
        participant_type=participant_type,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    if is_commit:
        db.commit()
        db.refresh(user)
    return user


def lock_user_by_id(db: Session, id: uuid.UUID) -> Optional[User]:
    """Row-lock the participant so their admissions run one at a time."""
    stmt = select(User).where(User.id == id).with_for_update()
    return db.execute(stmt).scalar()
