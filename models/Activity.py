import datetime
import uuid
from enum import StrEnum

from sqlalchemy import UUID, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models import Base


class ActivityType(StrEnum):
    WORKSHOP = "workshop"
    TALK = "talk"
    COMPETITION = "competition"
    OTHER = "other"


class Activity(Base):
    """Scheduled activity of the congress catalog.

    The catalog is owned by the admin area; the enrollment engine only reads
    it and locks its rows while admitting participants. ``start``/``end`` form
    the half-open interval ``[start, end)``.
    """

    __tablename__ = "activity"

    id: Mapped[uuid.UUID] = mapped_column(
        "id", UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column("title", String, nullable=False)
    description: Mapped[str] = mapped_column("description", String, nullable=True)
    location: Mapped[str] = mapped_column("location", String, nullable=True)
    activity_type: Mapped[str] = mapped_column(
        "activity_type", String, nullable=False, default=ActivityType.TALK
    )

    start = mapped_column("start", DateTime(timezone=True), nullable=True)
    end = mapped_column("end", DateTime(timezone=True), nullable=True)

    # None means unlimited seats
    capacity: Mapped[int] = mapped_column("capacity", Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column("is_active", Boolean, default=True)
    published: Mapped[bool] = mapped_column("published", Boolean, default=True)

    created_at = mapped_column(
        "created_at",
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
    )

    # Relationships
    enrollments = relationship("Enrollment", back_populates="activity")

    @property
    def is_available(self) -> bool:
        return bool(self.is_active and self.published)
