"""Structured logging configuration using structlog.

Lifecycle and read paths emit named events with the operator-facing
diagnostics (git stderr, OS errors) attached as fields:

    from barehub.observability.logging import get_logger

    logger = get_logger(__name__)
    logger.info("repository_created", name="my-repo", path="/srv/git/my-repo.git")

Mutating CLI commands are additionally recorded as JSON lines by the
audit logger (see ``get_audit_logger``).
"""

import getpass
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from barehub.config.schema import LoggingConfig

LOG_FILE_NAME = "barehub.log"
AUDIT_FILE_NAME = "cli-audit.log"


def _daily_handler(path: Path, max_days: int) -> TimedRotatingFileHandler:
    # One file per day, so the backup count is the retention in days
    path.parent.mkdir(parents=True, exist_ok=True)
    return TimedRotatingFileHandler(
        str(path), when="midnight", interval=1, backupCount=max_days, encoding="utf-8"
    )


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log events."""
    event_dict["app"] = "barehub"
    return event_dict


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog output for the process.

    Events go to stderr. With ``enable_file`` they go through the standard
    library root logger instead, which writes to ``log_dir/barehub.log``
    with daily rotation; if the directory cannot be created, stderr is used.
    """
    config = config or LoggingConfig()
    level = getattr(logging, config.level.value)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    logger_factory: Any = structlog.PrintLoggerFactory(file=sys.stderr)

    if config.enable_file:
        try:
            file_handler = _daily_handler(config.log_dir / LOG_FILE_NAME, config.max_days)
        except OSError as e:
            logging.warning(f"Failed to enable file logging: {e}. Using stderr only.")
        else:
            root_logger = logging.getLogger()
            for handler in root_logger.handlers[:]:
                if isinstance(handler, logging.FileHandler):
                    root_logger.removeHandler(handler)
                    handler.close()
            file_handler.setLevel(level)
            root_logger.addHandler(file_handler)
            root_logger.setLevel(level)
            logger_factory = structlog.stdlib.LoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class AuditLogger:
    """Writes one JSON line per CLI command to a daily-rotated file."""

    def __init__(self, log_file: Path, max_days: int = 30):
        self.log_file = log_file
        self._handler = _daily_handler(log_file, max_days)

    def record(
        self,
        command: str,
        args: list[str],
        exit_code: Optional[int] = None,
        duration_ms: Optional[int] = None,
        user: Optional[str] = None,
    ) -> None:
        """Append an audit entry for a finished command."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "command": command,
            "args": args,
            "exit_code": exit_code,
            "duration_ms": duration_ms,
            "user": user or getpass.getuser(),
        }
        record = logging.makeLogRecord({"levelno": logging.INFO, "msg": json.dumps(entry), "name": "audit"})

        try:
            self._handler.emit(record)
        except Exception as e:
            # Audit failures are logged, never raised
            get_logger(__name__).warning("audit_record_failed", command=command, error=str(e))

    def close(self) -> None:
        self._handler.close()


_audit_loggers: dict[Path, AuditLogger] = {}


def get_audit_logger(log_dir: Path, max_days: int = 30) -> AuditLogger:
    """Return the audit logger for ``log_dir``, creating it on first use."""
    log_file = log_dir / AUDIT_FILE_NAME
    if log_file not in _audit_loggers:
        _audit_loggers[log_file] = AuditLogger(log_file, max_days)
    return _audit_loggers[log_file]
