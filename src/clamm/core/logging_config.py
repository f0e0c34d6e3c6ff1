"""
Structured JSON logging for the pool engine.

Engine modules log through ``logging.getLogger(__name__)`` and put their
fields in ``extra``. Configuring the ``clamm`` logger here turns every such
call, from any ``clamm.*`` module, into one JSON object per line:

    {"timestamp": "...", "level": "info", "name": "clamm.core.pool",
     "message": "Swap executed", "event": "clamm.swap", "amount0": 10, ...}

The CLI configures logging once per invocation from PoolSettings; library
users who embed the engine can call setup_logging themselves or leave the
loggers unconfigured.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from .config import PoolSettings

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"

# Rotation for CLAMM_LOG_FILE
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class PoolJsonFormatter(jsonlogger.JsonFormatter):
    """
    Renders a pool log record as JSON.

    Besides the message and the ``extra`` fields of the call, every record
    gets the UTC time it was created, its lower-case level, the deployment
    environment, the service (top-level logger name) and the emitting
    function, module and line under ``source``.
    """

    def __init__(self, environment: str = "development", service: str = "clamm") -> None:
        super().__init__(fmt=LOG_FORMAT)
        self.environment = environment
        self.service = service

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            log_record["timestamp"] = created.isoformat()
        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["environment"] = self.environment
        log_record["service"] = self.service
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def _rotating_file_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )


def setup_logging(
    name: str = "clamm",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "development",
    enable_console: bool = True,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Attach JSON handlers to the ``name`` logger, replacing any it had.

    Args:
        name: Logger to configure; ``clamm.*`` module loggers propagate to ``clamm``
        log_file: Optional JSON log file, rotated at LOG_FILE_MAX_BYTES
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        environment: Value of the ``environment`` field in every record
        enable_console: Whether to write records to ``stream``
        stream: Console stream (defaults to stdout)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = PoolJsonFormatter(environment=environment, service=name.split(".")[0])

    if enable_console:
        console_handler = logging.StreamHandler(stream or sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = _rotating_file_handler(log_file)
        except OSError as e:
            logger.warning(
                "Could not open log file %s: %s",
                log_file,
                e,
                extra={"event": "logging.file_handler_failed", "log_file": log_file},
            )
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def setup_logging_from_settings(
    settings: PoolSettings,
    name: str = "clamm",
    level: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Configure logging from CLAMM_LOG_LEVEL, CLAMM_LOG_FILE and CLAMM_ENV.

    ``level`` overrides ``settings.log_level`` (the CLI's --log-level).
    """
    return setup_logging(
        name=name,
        log_file=settings.log_file,
        level=level or settings.log_level,
        environment=settings.environment,
        stream=stream,
    )
