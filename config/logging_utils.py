"""
Debug Logging Utilities

DEBUG-gated flow tracing for auth, task, storage and Gemini calls.
Operational events go through per-module loggers instead.
"""

import logging
from typing import Optional

from config.settings import settings


_debug_logger = logging.getLogger("taskflow.debug")
if not _debug_logger.handlers:
    _debug_handler = logging.StreamHandler()
    _debug_handler.setFormatter(
        logging.Formatter('[%(asctime)s] %(message)s', datefmt='%H:%M:%S')
    )
    _debug_logger.addHandler(_debug_handler)
_debug_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.WARNING)
_debug_logger.propagate = False


def _emit(marker: str, message: str, prefix: str = "") -> None:
    if not settings.DEBUG:
        return
    prefix_str = f"[{prefix}] " if prefix else ""
    _debug_logger.debug(f"{prefix_str}{marker}{message}")


def log_debug(message: str, *args, prefix: str = "") -> None:
    """
    Log a debug message only if DEBUG is set to True in settings.

    Args:
        message: The message to log, optionally with %-style placeholders
        *args: Values formatted into the message
        prefix: Category such as "AUTH", "TASKS", "STORE", "GEMINI" or "STATE"
    """
    if args:
        message = message % args
    _emit("", message, prefix)


def log_step(step_name: str, step_number: Optional[int] = None, total_steps: Optional[int] = None) -> None:
    """Log a numbered step of a multi-step flow."""
    if step_number is not None and total_steps is not None:
        progress = f"[{step_number}/{total_steps}] "
    elif step_number is not None:
        progress = f"[Step {step_number}] "
    else:
        progress = "[STEP] "
    _emit(progress, step_name)


def log_success(message: str, prefix: str = "") -> None:
    """Log a success message with a checkmark."""
    _emit("✓ ", message, prefix)


def log_error(message: str, prefix: str = "") -> None:
    """Log an error message with an X mark."""
    _emit("✗ ", message, prefix)


def log_progress(current: int, total: int, message: str = "", prefix: str = "") -> None:
    """
    Log a progress bar, e.g. while creating a batch of generated tasks.

    Args:
        current: Items done so far
        total: Total number of items
        message: Optional message to include
        prefix: Optional prefix for categorizing logs
    """
    percentage = (current / total * 100) if total > 0 else 0
    filled = int(percentage // 5)
    bar = f"[{'=' * filled}{' ' * (20 - filled)}] {percentage:.0f}%"
    msg_str = f" - {message}" if message else ""
    _emit("", f"{bar}{msg_str}", prefix)
