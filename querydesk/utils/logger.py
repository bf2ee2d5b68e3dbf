"""
Logging configuration
Unified logger setup with detailed error records
"""
import logging
import os
import sys
import traceback
from typing import Optional, Dict, Any
from pathlib import Path

from .datetime_helper import utc_now_naive


class DetailedFormatter(logging.Formatter):
    """Formatter that appends traceback and extra context to the record"""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record

        Args:
            record: log record

        Returns:
            formatted log line
        """
        formatted = super().format(record)

        if record.exc_info:
            formatted += f"\nException details:\n{self.formatException(record.exc_info)}"

        if hasattr(record, 'extra_context'):
            formatted += f"\nContext: {record.extra_context}"

        return formatted


def setup_logger(
    name: str = "querydesk",
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure a logger

    Args:
        name: logger name
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; defaults to LOG_LEVEL
        log_file: log file path; defaults to LOG_FILE
        console_output: also log to stdout

    Returns:
        the configured logger
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = os.getenv("LOG_FILE", "./logs/app.log")

    log_dir = os.path.dirname(log_file)
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper()))

    # avoid duplicate handlers on re-setup
    logger.handlers.clear()

    log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(DetailedFormatter(log_format, date_format))
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(DetailedFormatter(log_format, date_format))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "querydesk") -> logging.Logger:
    """
    Get a logger, configuring it on first use

    Args:
        name: logger name

    Returns:
        logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        setup_logger(name)

    return logger


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: Exception,
    context: Optional[Dict[str, Any]] = None
):
    """
    Log an error together with structured context

    Args:
        logger: logger
        message: error message
        error: the exception
        context: extra context such as SQL text or ids
    """
    error_details = {
        "message": message,
        "error_type": type(error).__name__,
        "error_message": str(error),
        "timestamp": utc_now_naive().isoformat(),
    }

    if context:
        error_details["context"] = context

    error_details["traceback"] = traceback.format_exc()

    logger.error(
        f"{message}\nDetails: {error_details}",
        exc_info=True,
        extra={"extra_context": context}
    )


def log_sql_error(
    logger: logging.Logger,
    sql: str,
    db_config_id: str,
    error: Exception,
    report_id: Optional[int] = None
):
    """
    Log a failed SQL execution

    Args:
        logger: logger
        sql: SQL text
        db_config_id: connection id
        error: the exception
        report_id: scheduled report id when the query came from the scheduler
    """
    context = {
        "sql": sql[:500] if sql else None,
        "db_config_id": db_config_id,
        "report_id": report_id,
    }
    log_error_with_context(logger, "SQL execution failed", error, context)


def log_database_connection_error(
    logger: logging.Logger,
    db_config: Dict[str, Any],
    error: Exception
):
    """
    Log a failed connection attempt

    Args:
        logger: logger
        db_config: connection settings (password fields are masked)
        error: the exception
    """
    safe_config = db_config.copy()
    if "password" in safe_config:
        safe_config["password"] = "***"
    if "encrypted_password" in safe_config:
        safe_config["encrypted_password"] = "***"

    context = {
        "db_config": safe_config,
    }
    log_error_with_context(logger, "Database connection failed", error, context)
