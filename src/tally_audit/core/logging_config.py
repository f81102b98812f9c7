"""
Structured logging for tally audits.

Log records are JSON (python-json-logger) so audit runs can be collected
and searched alongside other chain tooling. Console output goes to stderr
so it never mixes with the JSON report on stdout.

Usage:
    from tally_audit.core.logging_config import setup_logging

    setup_logging(level="INFO", log_file="/var/log/tally-audit/audit.json")
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class AuditJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, service and source location to every record."""

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name: str = "tally_audit",
    ):
        super().__init__(fmt=fmt)
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record or not log_record["timestamp"]:
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "tally_audit",
    level: str = "WARNING",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure the package logger with JSON output.

    Args:
        name: Logger name (the package root, so every module inherits it)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a rotating JSON log file (optional)
        enable_console: Whether to log to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    formatter = AuditJsonFormatter(service_name=name.split(".")[0])

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
