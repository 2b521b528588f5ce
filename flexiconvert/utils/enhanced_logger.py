import logging
import os
import sys
from typing import Any, Optional


def setup_enhanced_logging(name: Optional[str] = None, level: Optional[int] = None) -> logging.Logger:
    """
    Setup enhanced logging with context support.

    Args:
        name: Logger name (defaults to the ``flexiconvert`` logger)
        level: Logging level (defaults to ``LOG_LEVEL`` env var, then INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or "flexiconvert")

    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)

    return logger


def log_with_context(logger: logging.Logger, level: str, message: str, **context: Any) -> None:
    """
    Log a message with additional context information.

    Args:
        logger: Logger instance to use
        level: Log level as string ('debug', 'info', 'warning', 'error', 'critical')
        message: Log message
        **context: Additional context key-value pairs to include in log
    """
    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items() if v is not None]
        if context_parts:
            context_str = f" [{', '.join(context_parts)}]"

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(f"{message}{context_str}")
