import sys
from pathlib import Path
from contextvars import ContextVar
from typing import Optional
from loguru import logger
from fastapi import Request
from framework.config import settings

# Store current request in contextvars for async context
_current_request: ContextVar[Optional[Request]] = ContextVar("current_request", default=None)

LOG_DIR = Path(settings.LOG_DIR)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<magenta>Trace:{extra[trace_id]}</magenta> <yellow>Tenant:{extra[tenant_id]}</yellow> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | "
    "Trace:{extra[trace_id]} Tenant:{extra[tenant_id]} - {message}"
)


class LogConfig:
    """Global logging configuration using Loguru."""
    @classmethod
    def setup_logging(cls, level: str = "INFO", to_files: bool = True):
        logger.remove()
        logger.configure(extra={"trace_id": "system", "tenant_id": "-"})

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            diagnose=settings.DEBUG,
            format=CONSOLE_FORMAT,
            level=level,
        )

        if not to_files:
            return

        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            LOG_DIR / "app_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            compression="zip",
            enqueue=True,
            format=FILE_FORMAT,
            level="DEBUG",
        )

        # Access decisions and override writes get their own audit trail
        logger.add(
            LOG_DIR / "access_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="90 days",
            enqueue=True,
            format=FILE_FORMAT,
            level="INFO",
            filter=lambda record: record["extra"].get("audit") is True,
        )

        logger.add(
            LOG_DIR / "error_{time:YYYY-MM-DD}.log",
            level="ERROR",
            rotation="100 MB",
            enqueue=True,
        )


def get_logger(name: str = None, request: Optional[Request] = None):
    """Get logger instance; optionally pass request for trace_id, else from context."""
    current_request = request or _current_request.get()
    extra = {"name": name} if name else {}

    # Bound values beat contextualize(); module-level loggers must not pin trace ids
    if current_request is not None:
        extra["trace_id"] = getattr(current_request.state, "trace_id", "unknown")
        extra["tenant_id"] = getattr(current_request.state, "tenant_id", None) or "-"

    return logger.bind(**extra)


def get_audit_logger(name: str):
    """Logger whose records also land in the access audit file."""
    return get_logger(name).bind(audit=True)
