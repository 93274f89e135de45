"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

LOG_FILE_PATTERN = "timeline_*.log"


def get_log_directory() -> str:
    """Get the default log directory path."""
    return str(Path.home() / ".media-timeline" / "logs")


def init_logging(log_dir: str | None = None, level: str = "INFO", console: bool = True) -> None:
    """Initialize rotating file logging under `log_dir`, plus stderr if `console`."""
    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir).expanduser()
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "timeline_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level=level.upper(),
    )
    if console:
        logger.add(
            sys.stderr,
            level=level.upper(),
            format="{time:HH:mm:ss} | {level: <7} | {message}",
        )


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest log file in the specified directory."""
    if log_dir is None:
        log_dir = get_log_directory()

    try:
        log_path = Path(log_dir)
        if not log_path.exists():
            return None

        log_files = list(log_path.glob(LOG_FILE_PATTERN))
        if not log_files:
            return None

        # Return the most recently modified file
        return max(log_files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None
