import uuid

from sqlalchemy import UUID, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from models import Base


class Ticket(Base):
    """Anti-replay record of a signed attendance ticket.

    Rows are never deleted; ``used`` only ever goes from false to true.
    ``enrollment_id`` is not a foreign key so the audit trail survives a
    cancelled enrollment.
    """

    __tablename__ = "ticket"

    # the token's jti
    id: Mapped[str] = mapped_column("id", String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        "user_id", UUID(as_uuid=True), nullable=False, index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        "activity_id", UUID(as_uuid=True), nullable=False, index=True
    )
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        "enrollment_id", UUID(as_uuid=True), nullable=True
    )
    issued_at = mapped_column("issued_at", DateTime(timezone=True), nullable=False)
    expires_at = mapped_column("expires_at", DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column("used", Boolean, nullable=False, default=False)
    used_at = mapped_column("used_at", DateTime(timezone=True), nullable=True)
    used_by: Mapped[uuid.UUID] = mapped_column(
        "used_by", UUID(as_uuid=True), nullable=True
    )
    revoked_at = mapped_column("revoked_at", DateTime(timezone=True), nullable=True)
