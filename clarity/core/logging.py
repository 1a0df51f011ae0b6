"""
Structured logging configuration using structlog.

- JSON output in production, pretty console output in debug mode
- Context binding (request_id, journey_id) via contextvars
- Optional per-run log file under logs/, older runs culled
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

LOG_FILE_PREFIX = "clarity_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old run logs, keeping only the `keep` most recent."""
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for old_file in log_files[max(keep, 0):]:
        try:
            old_file.unlink()
        except OSError:
            pass  # file in use or already gone


def configure_logging(
    debug: bool = False,
    level: int = logging.INFO,
    logs_dir: Optional[Path] = None,
    log_runs_to_keep: int = 5,
) -> None:
    """Configure structlog for the application.

    Call once at startup, before any logging. Safe to call again (tests,
    reloads): existing root handlers are closed and replaced.

    Args:
        debug: Colored console rendering instead of JSON
        level: Minimum level for both structlog and stdlib handlers
        logs_dir: Directory for a per-run log file; None disables file output
        log_runs_to_keep: Number of run logs retained in logs_dir
    """
    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        # keep-1 to make room for this run's file
        _cull_old_logs(logs_dir, keep=log_runs_to_keep - 1)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log", mode="w"
        )
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
        from clarity.core.logging import get_logger

        log = get_logger(__name__)
        log.info("route_selected", technique="cbt")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind context variables included in all subsequent logs of this task.

        bind_context(journey_id=journey.id, request_id=request_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables (call when a request completes)."""
    structlog.contextvars.clear_contextvars()
