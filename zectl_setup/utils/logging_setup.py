#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/logging_setup.py
"""
Console and file logging with severity-coded prefixes
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

# Between INFO and WARNING, used for completed steps
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LEVEL_COLORS = {
    logging.DEBUG: "\033[1;33m",
    logging.INFO: "\033[0;34m",
    SUCCESS: "\033[0;32m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
    logging.CRITICAL: "\033[0;31m",
}
RESET = "\033[0m"


class PrefixFormatter(logging.Formatter):
    """Formats records as `[LEVEL] message`, colouring the prefix on a terminal"""

    def __init__(self, color: bool = False):
        super().__init__("%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = f"[{record.levelname}]"
        if self.color:
            prefix = f"{LEVEL_COLORS.get(record.levelno, '')}{prefix}{RESET}"
        return f"{prefix} {message}"


def debug_requested() -> bool:
    """DEBUG=1 in the environment turns on debug output"""
    return os.environ.get("DEBUG", "0") == "1"


def configure_logging(debug: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure root logging for a zectl-setup run.

    Args:
        debug: Emit DEBUG records on the console.
        log_file: Optional file that receives every record with timestamps.

    Returns:
        The root logger.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(PrefixFormatter(color=sys.stdout.isatty()))
    root.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(file_handler)

    # Third-party chatter stays out of the operator's console
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root
