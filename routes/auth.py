from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from core.responses import (
    BadRequest,
    Ok,
    Unauthorized,
    common_response,
)
from core.security import (
    generate_token_from_user,
    get_user_from_token,
    invalidate_token,
    oauth2_scheme,
    validated_password,
)
from models import get_db_sync
from repository import user as userRepo
from schemas.auth import (
    LoginEmailRequest,
    LoginSuccessResponse,
    LogoutSuccessResponse,
    MeResponse,
)
from schemas.common import (
    BadRequestResponse,
    InternalServerErrorResponse,
    UnauthorizedResponse,
)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/token/")
def swagger_form_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db_sync)
):
    user = userRepo.get_user_by_username(db=db, username=form_data.username)
    if user is None or not user.is_active or user.password is None:
        return common_response(BadRequest(message="Invalid Credentials"))

    is_valid = validated_password(user.password, form_data.password)
    if not is_valid:
        return common_response(BadRequest(message="Invalid Credentials"))

    token = generate_token_from_user(db=db, user=user)
    return {"access_token": token, "token_type": "bearer"}


@router.post(
    "/email/signin/",
    responses={
        "200": {"model": LoginSuccessResponse},
        "400": {"model": BadRequestResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def email_signin(request: LoginEmailRequest, db: Session = Depends(get_db_sync)):
    user = userRepo.get_user_by_email(db=db, email=request.email)
    if user is None or user.password is None or not user.is_active:
        return common_response(BadRequest(message="Invalid Credentials"))

    is_valid = validated_password(user.password, request.password)
    if not is_valid:
        return common_response(BadRequest(message="Invalid Credentials"))

    token = generate_token_from_user(db=db, user=user)
    response = LoginSuccessResponse(
        id=str(user.id),
        username=user.username,
        is_active=user.is_active,
        participant_type=user.participant_type,
        token=token,
    )
    return common_response(Ok(data=response.model_dump()))


@router.get(
    "/me/",
    responses={
        "200": {"model": MeResponse},
        "401": {"model": UnauthorizedResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def me(db: Session = Depends(get_db_sync), token: str = Depends(oauth2_scheme)):
    user = get_user_from_token(db=db, token=token)
    if user is None:
        return common_response(Unauthorized(message="Invalid Credentials"))

    response = MeResponse(
        id=str(user.id),
        username=user.username,
        participant_type=user.participant_type,
        is_staff=user.is_staff,
    )
    return common_response(Ok(data=response.model_dump()))


@router.post(
    "/logout/",
    responses={
        "200": {"model": LogoutSuccessResponse},
        "401": {"model": UnauthorizedResponse},
        "500": {"model": InternalServerErrorResponse},
    },
)
def logout(db: Session = Depends(get_db_sync), token: str = Depends(oauth2_scheme)):
    user = get_user_from_token(db=db, token=token)
    if user is None:
        return common_response(Unauthorized(message="Invalid Credentials"))

    invalidate_token(db=db, token=token)
    return common_response(Ok(data={"message": "logout successfully"}))
