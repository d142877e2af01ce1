"""
Root logger configuration for the CLI.

Console output always goes to stdout so warnings from degraded pricing steps
appear next to the command output. A rotating log file is added when
configured, and ``log_format="json"`` (or ``LOG_FORMAT=json``) switches both
handlers to structured records.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from pythonjsonlogger import jsonlogger

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"
JSON_FIELDS = "%(timestamp)s %(level)s %(name)s %(message)s"


class JSONFormatter(jsonlogger.JsonFormatter):
    """Structured formatter; ``extra`` keys such as ``event`` are kept as fields."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict):
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=self.formatTime(record),
            level=record.levelname,
            logger=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        )


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JSONFormatter(JSON_FIELDS)
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: Path | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Replace the root logger's handlers with console and optional file output.

    Args:
        level: Level name; unknown names fall back to INFO.
        log_format: "text" or "json". ``LOG_FORMAT`` takes precedence.
        log_file: Rotating log file, created along with its directory.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.

    Returns:
        logging.Logger: The root logger.
    """
    log_format = os.environ.get("LOG_FORMAT", log_format)
    formatter = _build_formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            root_logger.warning(f"Logging to console only, cannot open {log_path}: {e}")
        else:
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    # requests logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    root_logger.debug(f"Logging ready (level={level}, format={log_format})")
    return root_logger
