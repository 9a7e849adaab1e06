"""
Centralized Logging Configuration for the External Sync Service.

Console logging always; rotating file logs when LOG_DIR is configured.
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional

from extsync.config.settings import settings


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging."""

    def format(self, record):
        # Add custom fields to log record
        record.service_name = getattr(record, 'service_name', 'extsync')
        record.table = getattr(record, 'table', '-')

        # Format timestamp
        record.timestamp = datetime.fromtimestamp(record.created).isoformat()

        return super().format(record)


def setup_logging(log_level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Setup logging configuration."""
    level_name = (log_level or settings.app.log_level).upper()
    log_dir = settings.app.log_dir if log_dir is None else log_dir

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)

    console_format = (
        "%(asctime)s - %(name)s - %(levelname)s - "
        "%(message)s"
    )

    if settings.app.debug:
        console_format = (
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(filename)s:%(lineno)d] - %(message)s"
        )

    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

        file_format = (
            "%(timestamp)s - %(name)s - %(levelname)s - "
            "%(service_name)s - %(table)s - %(message)s"
        )

        # File handler for general application logs
        app_file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, "sync.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        app_file_handler.setLevel(logging.INFO)
        app_file_handler.setFormatter(StructuredFormatter(file_format))
        root_logger.addHandler(app_file_handler)

        # Error file handler for errors and above
        error_file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, "errors.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=10
        )
        error_file_handler.setLevel(logging.ERROR)
        error_file_handler.setFormatter(StructuredFormatter(file_format))
        root_logger.addHandler(error_file_handler)

    # Set specific logger levels
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info("Logging configuration initialized")
