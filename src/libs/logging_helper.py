import inspect
import logging
import os
import sys

from loguru import logger

from constants import ENV
from constants import LOG_LEVEL
from constants import PRODUCT

__all__ = ["logger", "setup_logging"]


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the logging call
        frame, depth = inspect.currentframe(), 0
        while frame:
            filename = frame.f_code.co_filename
            is_logging = filename == logging.__file__
            is_frozen = "importlib" in filename and "_bootstrap" in filename
            if depth > 0 and not (is_logging or is_frozen):
                break
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(log_level: int | str | None = None) -> None:
    """Route every stdlib logger through loguru.

    Args:
        log_level: Minimum level to emit (defaults to LOG_LEVEL env var)
    """
    level = log_level if log_level is not None else LOG_LEVEL
    if isinstance(level, int):
        level = logging.getLevelName(level)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logger.remove()
    if os.getenv("LOG_FORMAT") == "json":
        logger.add(sys.stdout, level=level, backtrace=True, diagnose=False, serialize=True)
    else:
        logger.add(sys.stdout, level=level, backtrace=True, diagnose=False)
    if ENV == "dev":
        logger.add(f"/tmp/{PRODUCT}-{ENV}.log", level=level)

    # Chatty client libraries
    for name in ("httpx", "httpcore", "botocore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging setup completed")
