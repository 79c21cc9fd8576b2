#Logging setup shared by the gateway and the load harness: one loguru pipeline, stdlib loggers forwarded into it

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

# Third-party loggers that should end up in the loguru sinks
FORWARDED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "casbin", "httpx")


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure loguru sinks and route stdlib logging into them."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    if log_file:
        logger.add(log_file, level=level, format=LOG_FORMAT, enqueue=True, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in FORWARDED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False

    logger.debug(f"Logging configured (level={level}, file={log_file})")


@contextmanager
def timed(operation: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
    """Measure a block and log its duration at debug level."""
    span: Dict[str, Any] = {"operation": operation, "metadata": metadata or {}}
    start = time.perf_counter()
    try:
        yield span
    finally:
        span["duration_ms"] = (time.perf_counter() - start) * 1000
        logger.debug(f"{operation} took {span['duration_ms']:.1f}ms")
