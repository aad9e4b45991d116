import uuid
from models import Base
from sqlalchemy import UUID, DateTime, String, Boolean
from sqlalchemy.orm import mapped_column, Mapped, relationship

PARTICIPANT = "Participant"
MANAGEMENT_PARTICIPANT = "Management"
VOLUNTEER_PARTICIPANT = "Volunteer"
ORGANIZER_PARTICIPANT = "Organizer"

# participant types allowed to scan tickets and manage enrollments
STAFF_PARTICIPANT_TYPES = (
    MANAGEMENT_PARTICIPANT,
    VOLUNTEER_PARTICIPANT,
    ORGANIZER_PARTICIPANT,
)


class User(Base):
    __tablename__ = "user"

    id: Mapped[uuid.UUID] = mapped_column(
        "id", UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column("username", String, nullable=True)
    password: Mapped[str] = mapped_column("password", String, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        "is_active", Boolean, nullable=True, default=False
    )
    first_name: Mapped[str] = mapped_column("first_name", String, nullable=True)
    last_name: Mapped[str] = mapped_column("last_name", String, nullable=True)
    email: Mapped[str] = mapped_column("email", String, nullable=True)
    participant_type: Mapped[str] = mapped_column(
        "participant_type", String, nullable=True, default=PARTICIPANT
    )
    created_at = mapped_column("created_at", DateTime(timezone=True))
    updated_at = mapped_column("updated_at", DateTime(timezone=True))

    # One to Many
    tokens = relationship("Token", back_populates="user")
    enrollments = relationship(
        "Enrollment", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return " ".join(n for n in (self.first_name, self.last_name) if n)

    @property
    def is_staff(self) -> bool:
        return self.participant_type in STAFF_PARTICIPANT_TYPES
