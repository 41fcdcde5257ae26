"""
Logging Configuration
Sets up the package logger for the drawing utilities.

The `info` and `sort` commands print their results on stdout, so console
log records go to stderr and stay out of piped output. Log files get the
full timestamped format.
"""
import logging
import sys
from typing import Optional, TextIO

CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configures the logger for the 'cadutilities' namespace.

    Args:
        level: Logging level of the console (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file. The file always
            records DEBUG and up.
        stream: Console stream, stderr when omitted.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("cadutilities")
    logger.setLevel(logging.DEBUG if log_file else level)

    # Repeated calls (CLI + tests) replace the previous handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%H:%M:%S'))
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
