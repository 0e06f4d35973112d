"""
Logging configuration for getcoub.

Supports:
- Coub ID markers on every record emitted while a run is active
- Multiple verbosity levels (MINIMAL, NORMAL, VERBOSE)
- Console output plus an optional log file
"""

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

# Context variable to track the coub currently being processed
_job_id_context: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

VERBOSITY_LEVELS = {
    "MINIMAL": logging.WARNING,
    "NORMAL": logging.INFO,
    "VERBOSE": logging.DEBUG,
}


class JobIDFormatter(logging.Formatter):
    """Formatter that prefixes records with the active coub ID."""

    def format(self, record: logging.LogRecord) -> str:
        job_id = _job_id_context.get()
        base_msg = super().format(record)
        if job_id:
            return f"[{job_id}] {base_msg}"
        return base_msg


class VerbosityFilter(logging.Filter):
    """Filter that controls which records are logged based on verbosity level."""

    def __init__(self, verbosity_level: str):
        """Initialize filter with verbosity level.

        Args:
            verbosity_level: One of 'MINIMAL', 'NORMAL', 'VERBOSE'
        """
        super().__init__()
        self.verbosity_level = verbosity_level.upper()
        self.min_level = VERBOSITY_LEVELS.get(self.verbosity_level, logging.INFO)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.min_level


def set_job_id(job_id: Optional[str]) -> None:
    """Set the current coub ID for log formatting (None to clear)."""
    _job_id_context.set(job_id)


def get_job_id() -> Optional[str]:
    """Get the current coub ID."""
    return _job_id_context.get()


def configure_logging(
    verbosity: str = "NORMAL", log_file: Optional[str] = None
) -> None:
    """Configure logging with coub markers and verbosity levels.

    Args:
        verbosity: One of 'MINIMAL', 'NORMAL', 'VERBOSE'
        log_file: Optional path to write logs to file (in addition to stdout)
    """
    verbosity = verbosity.upper()
    if verbosity not in VERBOSITY_LEVELS:
        raise ValueError(
            f"Invalid verbosity level: {verbosity}. Must be MINIMAL, NORMAL, or VERBOSE"
        )

    formatter = JobIDFormatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    verbosity_filter = VerbosityFilter(verbosity)

    root_logger = logging.getLogger()
    # Allow all levels through; filter controls output
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(verbosity_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(verbosity_filter)
        root_logger.addHandler(file_handler)

    # Connection pool chatter from requests
    logging.getLogger("urllib3").setLevel(logging.WARNING)
