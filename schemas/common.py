from typing import Optional

from pydantic import BaseModel


NoContentResponse = None

class UnauthorizedResponse(BaseModel):
    message: str = "Unauthorized"


class BadRequestResponse(BaseModel):
    message: str
    error_code: Optional[str] = None


class ForbiddenResponse(BaseModel):
    message: str = "You don't have permissions to perform this action"


class NotFoundResponse(BaseModel):
    message: str = "Not Found"
    error_code: Optional[str] = None


class InternalServerErrorResponse(BaseModel):
    detail: str
