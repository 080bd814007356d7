"""
Logging setup shared by the CLI and the API process.
"""

import logging
from pathlib import Path
from typing import Optional

from backend.src.curator.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging with a console handler and a file handler.

    Args:
        level: Log level name, defaults to settings.log_level
        log_file: Log file path, defaults to <logs_dir>/curator.log
    """
    level_name = (level or settings.log_level).upper()
    log_path = Path(log_file) if log_file else Path(settings.logs_dir) / "curator.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_path, encoding="utf-8"),
        ],
        force=True,
    )

    # Keep HTTP client chatter out of job logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)
