"""
Logging utilities for the application.
"""
import logging


def setup_logging(name: str = "tubeaudio", log_level: str = "INFO") -> logging.Logger:
    """
    Configure the package logger.

    Child loggers created with ``logging.getLogger(__name__)`` inside the
    package propagate here, so one handler covers the whole service.

    Args:
        name: Root logger name for the package
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            f"%(asctime)s - {name} - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
