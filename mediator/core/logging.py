"""
Structured logging configuration using structlog.

- JSON output in production, colored console output in debug mode
- Request-scoped context (request_id, session_id) via contextvars
- One log file per process start under logs/, oldest files culled
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

from mediator.core.config import settings

LOG_FILE_PREFIX = "mediator_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete all but the `keep` most recent mediator log files."""
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for old_file in log_files[keep:]:
        try:
            old_file.unlink()
        except OSError:
            pass  # another process may hold or have removed it


def configure_logging(
    log_files_to_keep: int = 5,
    logs_dir: Optional[Path] = None,
    level: int = logging.INFO,
) -> None:
    """Configure structlog for the application.

    Call once at startup, before any logging. Safe to call again (tests,
    reloads): existing root handlers are closed and replaced.

    Args:
        log_files_to_keep: Number of recent log files to retain
        logs_dir: Directory for log files (default: ./logs)
        level: Minimum level for both structlog and stdlib handlers
    """
    # Ensure logs directory exists
    logs_dir = logs_dir or Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    # keep-1 to leave room for the file created below
    _cull_old_logs(logs_dir, keep=max(log_files_to_keep - 1, 0))

    # One timestamped file per process start
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log"

    shared_processors: List[Processor] = [
        # Request-scoped context (request_id, session_id)
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        # Extra attributes from stdlib loggers
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.debug:
        # Development: colored console output
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        # Production: JSON for log aggregation
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Replace stdlib handlers so reconfiguration does not duplicate output
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    # File handler (new file per process start)
    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from mediator.core.logging import get_logger

        log = get_logger(__name__)
        log.info("turn_completed", session_id=session.id, stage=stage)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind context variables included in all subsequent logs of this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear request-scoped context so it does not leak between requests."""
    structlog.contextvars.clear_contextvars()
