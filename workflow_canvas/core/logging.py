"""
Logging Configuration
"""
import logging
import sys
from pathlib import Path
from typing import List

from workflow_canvas.core.config import get_settings


def setup_logging() -> None:
    """Configure application-wide logging"""
    settings = get_settings()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=handlers
    )

    # Set level for external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger for a specific module"""
    return logging.getLogger(name)
