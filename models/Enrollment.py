import datetime
import uuid

from sqlalchemy import (
    UUID,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models import Base


class Enrollment(Base):
    __tablename__ = "enrollment"
    __table_args__ = (
        UniqueConstraint("user_id", "activity_id", name="uq_enrollment_user_activity"),
        UniqueConstraint("activity_id", "seat_number", name="uq_enrollment_seat"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        "id", UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        "user_id", UUID(as_uuid=True), ForeignKey("user.id"), nullable=False, index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        "activity_id",
        UUID(as_uuid=True),
        ForeignKey("activity.id"),
        nullable=False,
        index=True,
    )
    seat_number: Mapped[int] = mapped_column("seat_number", Integer, nullable=False)
    attended: Mapped[bool] = mapped_column(
        "attended", Boolean, nullable=False, default=False
    )
    attended_at = mapped_column("attended_at", DateTime(timezone=True), nullable=True)
    # jti of the most recently issued ticket, empty while issuance is pending
    ticket_id: Mapped[str] = mapped_column("ticket_id", String(64), nullable=True)
    created_at = mapped_column(
        "created_at",
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
    )

    # Relationship
    user = relationship("User", back_populates="enrollments")
    activity = relationship("Activity", back_populates="enrollments")
