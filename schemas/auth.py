from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AuthorizationStatusEnum(str, Enum):
    PASSED = "passed"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


class LoginEmailRequest(BaseModel):
    email: str
    password: str


class LoginSuccessResponse(BaseModel):
    id: str
    username: Optional[str] = None
    is_active: bool
    participant_type: Optional[str] = None
    token: str


class MeResponse(BaseModel):
    id: str
    username: Optional[str] = None
    participant_type: Optional[str] = None
    is_staff: bool


class LogoutSuccessResponse(BaseModel):
    message: str
