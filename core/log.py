import os
import sys

from loguru import logger

log_format = " | ".join(
    (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>",
        "<level>{level:<8}</level>",
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>",
        "{message}",
    )
)

# replace loguru's default handler so the level comes from the environment
logger.remove()
logger.add(sys.stderr, format=log_format, level=os.environ.get("LOG_LEVEL", "INFO"))
