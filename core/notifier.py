from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from fastapi import BackgroundTasks

from core.email import send_enrollment_confirmation_email
from core.log import logger
from models.User import User


@dataclass(frozen=True)
class ConfirmedEnrollment:
    activity_id: str
    seat_number: int
    ticket_token: Optional[str]
    title: Optional[str] = None
    start: Optional[str] = None
    location: Optional[str] = None


class EnrollmentNotifier(ABC):
    @abstractmethod
    def notify_enrollment_confirmed(
        self, user: User, enrollments: List[ConfirmedEnrollment]
    ) -> None:
        """Fire-and-forget; must return before anything is delivered."""
        pass


class EmailEnrollmentNotifier(EnrollmentNotifier):
    """Queues the confirmation email on the response's background tasks."""

    def __init__(self, background_tasks: BackgroundTasks, enabled: bool = True):
        self.background_tasks = background_tasks
        self.enabled = enabled

    def notify_enrollment_confirmed(
        self, user: User, enrollments: List[ConfirmedEnrollment]
    ) -> None:
        if not self.enabled:
            logger.info(f"Mail disabled, skipping confirmation for user {user.id}")
            return
        if not user.email:
            logger.warning(f"User {user.id} has no email, skipping confirmation")
            return

        self.background_tasks.add_task(
            send_enrollment_confirmation_email,
            recipient=user.email,
            name=user.full_name or user.username or "Participant",
            activities=[
                {
                    "title": e.title,
                    "start": e.start,
                    "location": e.location,
                    "seat_number": e.seat_number,
                    "ticket_token": e.ticket_token,
                }
                for e in enrollments
            ],
        )
        logger.info(
            f"Queued enrollment confirmation for user {user.id} ({len(enrollments)} activities)"
        )
