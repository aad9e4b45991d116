import datetime
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session


@dataclass(frozen=True)
class RedemptionResult:
    success: bool
    message: str
    already_processed: bool = False
    processed_at: Optional[datetime.datetime] = None
    enrollment_id: Optional[uuid.UUID] = None


class TicketRedeemer(ABC):
    """Base class every ticket format accepted at the door must inherit."""

    @abstractmethod
    def redeem(
        self,
        db: Session,
        token: str,
        staff_id,
        activity_id=None,
    ) -> RedemptionResult:
        """Consume ``token`` for attendance, raising a ``TicketError`` on rejection."""
        pass
