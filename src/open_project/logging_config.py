"""
logging_config.py

loguru setup: human-readable records on stderr, JSON lines in a rotated
file under the platform log directory (~/.local/state/open-project-cli/log on
Linux).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import platformdirs
from loguru import logger

from open_project.config import APP_NAME
from open_project.errors import ConfigError

STDERR_FORMAT = "<level>{level: <8}</level> {message} <dim>{extra}</dim>"


def setup_logger(level: str = "WARNING", log_dir: Optional[Path] = None):
    """! @brief Replace loguru's default sink with the launcher's sinks.

    @param level Minimum level for the stderr sink.
    @param log_dir Directory of the JSON log file; platform log dir if None.
    @return The configured logger.
    @throws ConfigError if the log file cannot be created. The stderr sink
            is already in place by then.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=STDERR_FORMAT)

    try:
        if log_dir is None:
            log_dir = Path(platformdirs.user_log_dir(APP_NAME, appauthor=False, ensure_exists=True))
        else:
            log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(log_dir / "open-project.jsonl"),
            format="{message}",
            serialize=True,
            rotation="5 MB",
            retention="7 days",
            level="DEBUG",
        )
    except OSError as e:
        raise ConfigError(f"cannot create the log file: {e}") from e
    return logger
