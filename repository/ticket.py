import datetime
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.Ticket import Ticket


def create_ticket(
    db: Session,
    ticket_id: str,
    user_id: uuid.UUID,
    activity_id: uuid.UUID,
    issued_at: datetime.datetime,
    expires_at: datetime.datetime,
    enrollment_id: Optional[uuid.UUID] = None,
    is_commit: bool = True,
) -> Ticket:
    ticket = Ticket(
        id=ticket_id,
        user_id=user_id,
        activity_id=activity_id,
        enrollment_id=enrollment_id,
        issued_at=issued_at,
        expires_at=expires_at,
        used=False,
    )
    db.add(ticket)
    db.flush()
    if is_commit:
        db.commit()
    return ticket


def get_ticket_by_id(db: Session, ticket_id: str) -> Optional[Ticket]:
    stmt = select(Ticket).where(Ticket.id == ticket_id)
    return db.execute(stmt).scalar()


def mark_ticket_used(
    db: Session,
    ticket_id: str,
    used_at: datetime.datetime,
    used_by: uuid.UUID,
) -> bool:
    """Compare-and-set ``used`` from false to true without committing

    Args:
        db (Session): Database session
        ticket_id (str): jti of the ticket
        used_at (datetime.datetime): redemption time
        used_by (uuid.UUID): staff user scanning the ticket

    Returns:
        bool: True only for the single caller whose update applied
    """
    stmt = (
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.used.is_(False))
        .values(used=True, used_at=used_at, used_by=used_by)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def revoke_unused_tickets(
    db: Session,
    user_id: uuid.UUID,
    activity_id: uuid.UUID,
    revoked_at: datetime.datetime,
    is_commit: bool = True,
) -> int:
    stmt = (
        update(Ticket)
        .where(
            Ticket.user_id == user_id,
            Ticket.activity_id == activity_id,
            Ticket.used.is_(False),
            Ticket.revoked_at.is_(None),
        )
        .values(revoked_at=revoked_at)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if is_commit:
        db.commit()
    return result.rowcount
