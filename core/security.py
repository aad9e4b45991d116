from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm import Session as SQLAlchemySession

from core.helper import ensure_utc, utc_now
from models import get_db_sync
from models.Token import Token
from models.User import User
from schemas.auth import AuthorizationStatusEnum
from settings import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    SECRET_KEY,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token/", auto_error=False)


def generate_hash_password(password: str) -> str:
    hash = bcrypt.hashpw(str.encode(password), bcrypt.gensalt())
    return hash.decode()


def validated_password(hash: str, password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hash.encode())
    except Exception:
        return False


def generate_token_from_user(db: SQLAlchemySession, user: User) -> str:
    """
    Session token of the HTTP API, unrelated to attendance tickets
    {
        "id": "aaaa-bbbb-cccc-dddd",
        "username": "someusername",
        "exp": 1641455971,
    }
    """
    expire = utc_now() + timedelta(minutes=float(ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "id": str(user.id),
        "username": user.username,
        "exp": expire,
    }
    token = jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)
    db.add(Token(user=user, token=token, expired_at=expire))
    db.commit()
    return token


def get_user_from_token(db: SQLAlchemySession, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    try:
        payload = jwt.decode(jwt=token, key=SECRET_KEY, algorithms=[ALGORITHM])
        id = payload.get("id")
    except Exception:
        invalidate_token(db=db, token=token)
        return None

    stmt = select(Token).where(Token.token == token)
    session = db.execute(stmt).scalar()
    if session is None or str(session.user_id) != id:
        return None
    if ensure_utc(session.expired_at) <= utc_now():
        invalidate_token(db=db, token=token)
        return None

    return session.user


def get_current_user(
    db: Session = Depends(get_db_sync), token: str = Depends(oauth2_scheme)
) -> Optional[User]:
    return get_user_from_token(db, token)


def invalidate_token(db: SQLAlchemySession, token: str):
    # clear all expired token and selected_token
    stmt = (
        delete(Token)
        .where(or_(Token.expired_at <= utc_now(), Token.token == token))
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()


def check_staff(current_user: User | None) -> AuthorizationStatusEnum:
    """Check if the current user may scan tickets and act for other participants.
    Args:
        current_user (User | None): The current authenticated user.
    Returns:
        AuthorizationStatusEnum: The authorization status.
    """
    if current_user is None:
        return AuthorizationStatusEnum.UNAUTHORIZED
    if not current_user.is_staff:
        return AuthorizationStatusEnum.FORBIDDEN
    return AuthorizationStatusEnum.PASSED
