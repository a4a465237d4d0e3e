"""Logging setup for the training planner.

Engine modules log through the shared loguru ``logger`` and pass structured
context as keyword arguments; that context lands in ``extra`` and is rendered
after the message. A chat session binds its plan and user once through
``conversation_logger`` so every line of a conversation can be correlated.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> | {extra}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message} | {extra}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    *,
    serialize: bool = False,
) -> None:
    """Configure loguru with a console handler and an optional file handler.

    Args:
        level: Minimum level for both handlers
        log_file: Optional path of a rotating log file
        rotation: When to rotate the file (e.g. "10 MB", "1 day")
        retention: How long rotated files are kept
        serialize: Write the file as JSON lines instead of text
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
            diagnose=False,
        )

    logger.debug("Logging configured", level=level, log_file=log_file)


def conversation_logger(plan_id: str, user_id: str):
    """Logger bound to one plan conversation."""
    return logger.bind(plan_id=plan_id, user_id=user_id)
