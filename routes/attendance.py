import traceback
from datetime import datetime

import pytz
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.attendance import attendance_for_activity, attendance_scanner, attendance_stats
from core.exceptions import DomainError, TicketError
from core.helper import ensure_utc
from core.log import logger
from core.responses import (
    Created,
    Forbidden,
    InternalServerError,
    Ok,
    Unauthorized,
    common_response,
    handle_domain_error,
)
from core.secure_ticket import secure_ticket_service
from core.security import check_staff, get_current_user
from models import get_db_sync
from models.User import User
from schemas.auth import AuthorizationStatusEnum
from schemas.common import (
    BadRequestResponse,
    ForbiddenResponse,
    InternalServerErrorResponse,
    NotFoundResponse,
    UnauthorizedResponse,
)
from schemas.ticket import (
    AttendanceItem,
    AttendanceListResponse,
    AttendanceStatsResponse,
    CheckinRequest,
    CheckinResponse,
    IssueTicketRequest,
    IssueTicketResponse,
    ValidateTicketRequest,
    ValidateTicketResponse,
)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


def _staff_only(current_user: User | None):
    auth_status = check_staff(current_user)
    if auth_status == AuthorizationStatusEnum.UNAUTHORIZED:
        return common_response(Unauthorized(message="Unauthorized"))
    if auth_status == AuthorizationStatusEnum.FORBIDDEN:
        return common_response(Forbidden())
    return None


@router.post(
    "/ticket",
    responses={
        "201": {"model": IssueTicketResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def issue_ticket(
    request: IssueTicketRequest,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    """Issue a new signed ticket for an enrollment, also used to reissue a lost one"""
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))

    user_id = current_user.id
    if request.user_id is not None and request.user_id != str(current_user.id):
        if not current_user.is_staff:
            return common_response(Forbidden())
        user_id = request.user_id

    try:
        ticket = secure_ticket_service.issue(db, user_id, request.activity_id)
    except DomainError as e:
        return handle_domain_error(e)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in issue_ticket: {e}")
        return common_response(
            InternalServerError(error=f"Internal Server Error: {str(e)}")
        )

    response = IssueTicketResponse(
        ticket_id=ticket.ticket_id, token=ticket.token, expires_at=ticket.expires_at
    )
    return common_response(Created(data=response.model_dump(mode="json")))


@router.post(
    "/ticket/validate",
    responses={
        "200": {"model": ValidateTicketResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
    },
)
def validate_ticket(
    request: ValidateTicketRequest,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    """Check a ticket without consuming it"""
    denied = _staff_only(current_user)
    if denied is not None:
        return denied

    try:
        payload = secure_ticket_service.validate(db, request.token.strip())
    except TicketError as e:
        response = ValidateTicketResponse(valid=False, message=e.message)
        return common_response(Ok(data=response.model_dump(mode="json")))
    except DomainError as e:
        return handle_domain_error(e)

    response = ValidateTicketResponse(
        valid=True,
        user_id=payload.sub,
        activity_id=payload.act,
        expires_at=datetime.fromtimestamp(payload.exp, tz=pytz.utc),
        message="Valid code",
    )
    return common_response(Ok(data=response.model_dump(mode="json")))


@router.post(
    "/checkin",
    responses={
        "200": {"model": CheckinResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
        "404": {"model": NotFoundResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def checkin(
    request: CheckinRequest,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    """Register attendance from a scanned code

    Scanning the same code again answers 200 with ``already_processed`` set,
    so a scanner can retry safely after a network failure.
    """
    denied = _staff_only(current_user)
    if denied is not None:
        return denied

    try:
        scan = attendance_scanner.scan(
            db, request.token, staff_id=current_user.id, activity_id=request.activity_id
        )
    except DomainError as e:
        return handle_domain_error(e)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in checkin: {e}")
        return common_response(
            InternalServerError(error=f"Internal Server Error: {str(e)}")
        )

    response = CheckinResponse(
        success=scan.result.success,
        message=scan.result.message,
        already_processed=scan.result.already_processed,
        processed_at=scan.result.processed_at,
        format=scan.format,
    )
    return common_response(Ok(data=response.model_dump(mode="json")))


@router.get(
    "/activity/{activity_id}",
    responses={
        "200": {"model": AttendanceListResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
    },
)
def activity_attendance(
    activity_id: str,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    denied = _staff_only(current_user)
    if denied is not None:
        return denied
    try:
        enrollments = attendance_for_activity(db, activity_id)
    except DomainError as e:
        return handle_domain_error(e)

    response = AttendanceListResponse(
        activity_id=activity_id,
        results=[
            AttendanceItem(
                enrollment_id=str(e.id),
                user_id=str(e.user_id),
                full_name=e.user.full_name if e.user else None,
                email=e.user.email if e.user else None,
                seat_number=e.seat_number,
                attended=e.attended,
                attended_at=ensure_utc(e.attended_at),
            )
            for e in enrollments
        ],
    )
    return common_response(Ok(data=response.model_dump(mode="json")))


@router.get(
    "/activity/{activity_id}/stats",
    responses={
        "200": {"model": AttendanceStatsResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
    },
)
def activity_attendance_stats(
    activity_id: str,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    denied = _staff_only(current_user)
    if denied is not None:
        return denied
    try:
        stats = attendance_stats(db, activity_id)
    except DomainError as e:
        return handle_domain_error(e)
    return common_response(Ok(data=stats.model_dump(mode="json")))
