"""Root logging setup for the command line tool."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
ACTION_LOG_FORMAT = "%(message)s"


class GitHubActionsFormatter(logging.Formatter):
    """Turns warnings and errors into GitHub workflow annotations."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"::error::{message}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{message}"
        return message


def configure_logging(github_action: bool = False, level: Optional[str] = None) -> None:
    """Configure root logging to stdout.

    Args:
        github_action: Emit workflow annotations instead of timestamps
        level: Log level name, defaults to LOG_LEVEL or INFO
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    handler = logging.StreamHandler(sys.stdout)
    if github_action:
        handler.setFormatter(GitHubActionsFormatter(ACTION_LOG_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
