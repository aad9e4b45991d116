import uuid
from datetime import datetime
from typing import Optional

import pytz

from core.exceptions import InvalidRequestError


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from stores without timezones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=pytz.utc)
    return value.astimezone(pytz.utc)


def to_uuid(value, field: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidRequestError(f"{field} is not a valid identifier")
