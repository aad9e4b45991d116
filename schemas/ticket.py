from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TicketPayload(BaseModel):
    """Claims carried by a signed ticket. Field order is part of the wire format."""

    sub: str = Field(..., description="Subject user id")
    act: str = Field(..., description="Activity id")
    iat: int = Field(..., description="Issued at, unix seconds")
    jti: str = Field(..., min_length=1, description="Unique ticket id")
    exp: int = Field(..., description="Expiry, unix seconds")


class TicketFormat(str, Enum):
    secure = "secure"
    legacy = "legacy"


class IssueTicketRequest(BaseModel):
    activity_id: str = Field(description="Activity the ticket grants attendance to")
    user_id: Optional[str] = Field(
        default=None, description="Participant id, only staff may set it"
    )


class IssueTicketResponse(BaseModel):
    ticket_id: str
    token: str
    expires_at: datetime


class ValidateTicketRequest(BaseModel):
    token: str = Field(min_length=1)


class ValidateTicketResponse(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    activity_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    message: str


class CheckinRequest(BaseModel):
    token: str = Field(min_length=1, description="QR payload read by the scanner")
    activity_id: Optional[str] = Field(
        default=None,
        description="Activity being checked, only used by legacy codes",
    )


class CheckinResponse(BaseModel):
    success: bool
    message: str
    already_processed: bool = False
    processed_at: Optional[datetime] = None
    format: TicketFormat


class AttendanceItem(BaseModel):
    enrollment_id: str
    user_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    seat_number: int
    attended: bool
    attended_at: Optional[datetime] = None


class AttendanceListResponse(BaseModel):
    activity_id: str
    results: List[AttendanceItem]


class AttendanceStatsResponse(BaseModel):
    activity_id: str
    activity_title: str
    total_enrolled: int
    total_attended: int
    attendance_rate: float
    capacity: Optional[int] = None
    capacity_utilization: Optional[float] = None
