import os
from core.log import logger

if os.environ.get("ENVIRONTMENT") != "os":
    logger.info("load env from file")
    from dotenv import load_dotenv

    load_dotenv()
else:
    logger.info("load env from os")


def str_to_bool(string: str) -> bool:
    if string in ["true", "TRUE", "True"]:
        return True
    elif string in ["false", "FALSE", "False"]:
        return False
    else:
        raise Exception(
            f"{string} is not boolean, ex input true -> true, True, TRUE, ex input false -> false, False, FALSE"
        )


def str_to_positive_int(string: str | None, default: int) -> int:
    try:
        value = int(string)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


# Environtment
ENVIRONTMENT = os.environ.get("ENVIRONTMENT")

# Deployment mode
DEPLOYMENT_MODE = os.environ.get("DEPLOYMENT_MODE", "development")

# JWT conf
JWT_PREFIX = os.environ.get("JWT_PREFIX", "Bearer")
SECRET_KEY = os.environ.get("SECRET_KEY", "congress_secret")
ALGORITHM = os.environ.get("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# Timezone
TZ = os.environ.get("TZ", "America/Guatemala")

# Postgresql conf
POSTGRES_USER = os.environ.get("POSTGRES_USER")
POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD")
POSTGRES_HOST = os.environ.get("POSTGRES_HOST")
POSTGRES_PORT = os.environ.get("POSTGRES_PORT")
POSTGRES_DATABASE = os.environ.get("POSTGRES_DATABASE")
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"postgresql+psycopg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DATABASE}",
)

FRONTEND_BASE_URL = os.environ.get("FRONTEND_BASE_URL", "")

# Ticket conf
TICKET_SECRET_MIN_LENGTH = 32
TICKET_SECRET = os.environ.get("TICKET_SECRET")
if not TICKET_SECRET:
    logger.critical("TICKET_SECRET is missing, signed tickets cannot be issued")
    raise Exception("TICKET_SECRET environment variable is not configured")
if len(TICKET_SECRET) < TICKET_SECRET_MIN_LENGTH:
    logger.critical(f"TICKET_SECRET is too short (length: {len(TICKET_SECRET)})")
    raise Exception(
        f"TICKET_SECRET is too short; must be at least {TICKET_SECRET_MIN_LENGTH} characters"
    )
if not all(c.isalnum() or c in "-_." for c in TICKET_SECRET):
    logger.warning(
        "TICKET_SECRET contains unexpected characters. Continuing, but consider rotating"
    )

TICKET_TTL_SECONDS = str_to_positive_int(os.environ.get("TICKET_TTL_SECONDS"), 604800)

# allow_many: older tickets stay redeemable, invalidate: reissue revokes them
TICKET_REISSUE_POLICY = os.environ.get("TICKET_REISSUE_POLICY", "allow_many")
if TICKET_REISSUE_POLICY not in ("allow_many", "invalidate"):
    raise Exception(
        f"{TICKET_REISSUE_POLICY} is not a reissue policy, use allow_many or invalidate"
    )

LEGACY_TICKET_ENABLED = str_to_bool(os.environ.get("LEGACY_TICKET_ENABLED", "True"))
LEGACY_TICKET_PREFIX = os.environ.get("LEGACY_TICKET_PREFIX", "CONGRESO2024")
LEGACY_TICKET_MAX_AGE_DAYS = str_to_positive_int(
    os.environ.get("LEGACY_TICKET_MAX_AGE_DAYS"), 7
)

# MAIL conf
MAIL_ENABLED = str_to_bool(os.environ.get("MAIL_ENABLED", "False"))
MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
MAIL_FROM = os.environ.get("MAIL_FROM", "test@example.com")
MAIL_PORT = int(os.environ.get("MAIL_PORT", "465"))
MAIL_SERVER = os.environ.get("MAIL_SERVER", "")
MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "")
MAIL_TLS = str_to_bool(os.environ.get("MAIL_TLS", "False"))
MAIL_SSL = str_to_bool(os.environ.get("MAIL_SSL", "True"))
USE_CREDENTIALS = str_to_bool(os.environ.get("USE_CREDENTIALS", "True"))
