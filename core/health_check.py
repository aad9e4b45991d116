from sqlalchemy import text

from core.log import logger
from models import IS_SQLITE, db
from settings import POSTGRES_HOST, POSTGRES_PORT


def health_check():
    logger.info("run app with")
    if IS_SQLITE:
        logger.info("sqlite database")
    else:
        logger.info(f"postgres host = {POSTGRES_HOST}")
        logger.info(f"postgres port = {POSTGRES_PORT}")
    logger.info("try echo database")
    with db() as session:
        session.execute(text("SELECT 1"))
    logger.info("successfully connect to database")


def database_is_reachable() -> bool:
    try:
        with db() as session:
            session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
    return True
