import traceback

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from core.enrollment_scheduler import enrollment_scheduler
from core.exceptions import DomainError
from core.helper import ensure_utc
from core.log import logger
from core.notifier import EmailEnrollmentNotifier
from core.responses import (
    Created,
    Forbidden,
    InternalServerError,
    NoContent,
    Ok,
    Unauthorized,
    common_response,
    handle_domain_error,
)
from core.security import get_current_user
from models import get_db_sync
from models.User import User
from repository import enrollment as enrollmentRepo
from schemas.common import (
    BadRequestResponse,
    ForbiddenResponse,
    InternalServerErrorResponse,
    NoContentResponse,
    UnauthorizedResponse,
)
from schemas.enrollment import (
    ActivityIdsRequest,
    AdmissionItem,
    CapacityStatusResponse,
    ConflictErrorResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    MyEnrollmentItem,
    MyEnrollmentResponse,
    TimeConflictsResponse,
)
from settings import MAIL_ENABLED

router = APIRouter(prefix="/enrollment", tags=["Enrollment"])


@router.post(
    "/",
    responses={
        "201": {"model": EnrollmentResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
        "409": {"model": ConflictErrorResponse},
        "422": {"model": ConflictErrorResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def enroll(
    request: EnrollmentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    """Enroll into every requested activity or none of them

    Args:
        request (EnrollmentRequest): activity ids, staff may also pass a user id
        background_tasks (BackgroundTasks): carries the confirmation email
        db (Session, optional): DB session. Defaults to Depends(get_db_sync).

    Returns:
        EnrollmentResponse: seat and ticket of each admitted activity
    """
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))

    user_id = current_user.id
    if request.user_id is not None and request.user_id != str(current_user.id):
        if not current_user.is_staff:
            return common_response(Forbidden())
        user_id = request.user_id

    logger.info(f"Enrollment request for user {user_id}: {request.activity_ids}")
    try:
        results = enrollment_scheduler.admit_batch(
            db=db,
            user_id=user_id,
            activity_ids=request.activity_ids,
            notifier=EmailEnrollmentNotifier(background_tasks, enabled=MAIL_ENABLED),
        )
    except DomainError as e:
        return handle_domain_error(e)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in enroll: {e}")
        return common_response(
            InternalServerError(error=f"Internal Server Error: {str(e)}")
        )

    response = EnrollmentResponse(
        data=[
            AdmissionItem(
                activity_id=str(r.activity_id),
                enrollment_id=str(r.enrollment_id),
                seat_number=r.seat_number,
                ticket_id=r.ticket_id,
                token=r.token,
                expires_at=r.expires_at,
                ticket_pending=r.ticket_pending,
            )
            for r in results
        ],
        message=(
            "Enrollment successful, some tickets are still pending"
            if any(r.ticket_pending for r in results)
            else "Enrollment successful"
        ),
    )
    return common_response(Created(data=response.model_dump(mode="json")))


@router.get(
    "/me",
    responses={
        "200": {"model": MyEnrollmentResponse},
        "401": {"model": UnauthorizedResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def my_enrollments(
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))
    try:
        enrollments = enrollmentRepo.get_enrollments_by_user_id(db, current_user.id)
        response = MyEnrollmentResponse(
            results=[
                MyEnrollmentItem(
                    id=str(e.id),
                    activity_id=str(e.activity_id),
                    activity_title=e.activity.title,
                    start=ensure_utc(e.activity.start),
                    end=ensure_utc(e.activity.end),
                    seat_number=e.seat_number,
                    attended=e.attended,
                    ticket_id=e.ticket_id,
                )
                for e in enrollments
            ]
        )
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in my_enrollments: {e}")
        return common_response(
            InternalServerError(error=f"Internal Server Error: {str(e)}")
        )
    return common_response(Ok(data=response.model_dump(mode="json")))


@router.delete(
    "/{enrollment_id}",
    responses={
        "204": {"model": NoContentResponse},
        "401": {"model": UnauthorizedResponse},
        "403": {"model": ForbiddenResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def cancel_enrollment(
    enrollment_id: str,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))
    try:
        enrollment_scheduler.cancel_enrollment(
            db=db,
            enrollment_id=enrollment_id,
            requester_id=current_user.id,
            is_staff=current_user.is_staff,
        )
    except DomainError as e:
        return handle_domain_error(e)
    except Exception as e:
        traceback.print_exc()
        logger.error(f"Error in cancel_enrollment: {e}")
        return common_response(
            InternalServerError(error=f"Internal Server Error: {str(e)}")
        )
    return common_response(NoContent())


@router.post(
    "/validate-time-conflicts",
    responses={
        "200": {"model": TimeConflictsResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
    },
)
def validate_time_conflicts(
    request: ActivityIdsRequest,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))
    try:
        conflicts = enrollment_scheduler.find_time_conflicts(db, request.activity_ids)
    except DomainError as e:
        return handle_domain_error(e)

    response = TimeConflictsResponse(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        message=(
            "The selected activities overlap, choose only one of each pair"
            if conflicts
            else "No time conflicts"
        ),
    )
    return common_response(Ok(data=response.model_dump(mode="json")))


@router.post(
    "/check-capacity",
    responses={
        "200": {"model": CapacityStatusResponse},
        "400": {"model": BadRequestResponse},
        "401": {"model": UnauthorizedResponse},
    },
)
def check_capacity(
    request: ActivityIdsRequest,
    db: Session = Depends(get_db_sync),
    current_user: User | None = Depends(get_current_user),
):
    if current_user is None:
        return common_response(Unauthorized(message="Unauthorized"))
    try:
        results = enrollment_scheduler.capacity_status(db, request.activity_ids)
    except DomainError as e:
        return handle_domain_error(e)
    response = CapacityStatusResponse(results=results)
    return common_response(Ok(data=response.model_dump(mode="json")))
