"""
Logging Configuration
Sets up the package logger for command line runs.
"""
from __future__ import annotations

import logging
import sys


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """
    Configures the logger for the 'pointsurf' namespace.

    Library modules only ever call ``logging.getLogger(__name__)``; this
    function is meant for entry points (the CLI, scripts, notebooks).

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Path of an extra log file, or None for console only.
    """
    logger = logging.getLogger("pointsurf")
    logger.setLevel(level)

    #avoid duplicate handlers when called twice in one process
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    #reduce trimesh verbosity
    logging.getLogger("trimesh").setLevel(logging.ERROR)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
