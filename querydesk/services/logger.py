"""Centralized logging service using loguru."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from querydesk.config import settings

# Configure loguru
LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(exist_ok=True)

# Remove default handler
logger.remove()

# Add console handler with color
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

# Add file handler
logger.add(
    LOG_DIR / "querydesk_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",  # New file at midnight
    retention="7 days",  # Keep logs for 7 days
    compression="zip",
)

# Reduce noise from framework/network libraries
import logging

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_transport_call(
    operation: str,
    status: str,
    duration_ms: int = 0,
    error: Optional[str] = None,
    **kwargs,
) -> None:
    """Log a call made to the remote query service."""
    call_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation,
        "status": status,
        "duration_ms": duration_ms,
        "error": error,
        **kwargs,
    }
    if error:
        logger.error(f"TRANSPORT_CALL_FAILED: {call_data}")
    else:
        logger.info(f"TRANSPORT_CALL: {call_data}")


def log_job_step(
    job_id: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a state change of a long-running generation job."""
    step_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "job_id": job_id,
        "status": status,
        "data": data,
    }
    logger.info(f"JOB_STEP: {step_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
