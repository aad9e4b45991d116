from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class EnrollmentRequest(BaseModel):
    activity_ids: List[str] = Field(
        min_length=1, description="Activities to enroll in, all or nothing"
    )
    user_id: Optional[str] = Field(
        default=None, description="Participant id, only staff may set it"
    )


class AdmissionItem(BaseModel):
    activity_id: str
    enrollment_id: str
    seat_number: int
    ticket_id: Optional[str] = None
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
    ticket_pending: bool = False


class EnrollmentResponse(BaseModel):
    data: List[AdmissionItem]
    message: str = "Enrollment successful"


class MyEnrollmentItem(BaseModel):
    id: str
    activity_id: str
    activity_title: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    seat_number: int
    attended: bool
    ticket_id: Optional[str] = None


class MyEnrollmentResponse(BaseModel):
    results: List[MyEnrollmentItem]


class ActivityIdsRequest(BaseModel):
    activity_ids: List[str] = Field(default_factory=list)


class TimeConflictItem(BaseModel):
    activity_id: str
    with_activity_id: str
    description: str


class TimeConflictsResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[TimeConflictItem]
    message: str


class CapacityStatusItem(BaseModel):
    activity_id: str
    activity_title: str
    current_enrollments: int
    max_capacity: Optional[int] = None
    available_spots: Optional[int] = None
    has_capacity_limit: bool
    is_full: bool
    capacity_percentage: float
    status: str


class CapacityStatusResponse(BaseModel):
    results: List[CapacityStatusItem]


class ConflictErrorResponse(BaseModel):
    message: str
    error_code: str
    activity_id: Optional[str] = None
    with_activity_id: Optional[str] = None
