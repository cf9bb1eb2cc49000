"""
Error reports for the sync and notification jobs.

Each failure worth a human look gets its own timestamped file under
backend/logs/, named after the stage that failed.
"""

import os
import traceback
from datetime import datetime
from typing import Any

LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "logs")


def log_error(
    error_type: str,
    error_message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
    log_dir: str = LOG_DIR,
) -> str:
    """
    Write an error report to a timestamped file.

    Args:
        error_type: Stage that failed ('sync', 'dispatch', 'sending')
        error_message: The error message
        context: Identifiers needed to reproduce (repository_id, user_id, ...)
        exc: Exception to include a traceback for
        log_dir: Directory for report files

    Returns:
        Path to the report file
    """
    os.makedirs(log_dir, exist_ok=True)

    now = datetime.now()
    filename = os.path.join(
        log_dir, f"{error_type}_error_{now.strftime('%Y%m%d_%H%M%S_%f')}.txt"
    )

    lines = [
        f"{error_type.capitalize()} Error Report - {now}",
        "=" * 60,
        "",
        f"Error Type: {error_type}",
        f"Error Message: {error_message}",
        "",
    ]
    if context:
        lines += ["Context:", "-" * 60]
        lines += [f"{key}: {value}" for key, value in context.items()]
        lines.append("")
    if exc is not None:
        lines += ["Traceback:", "-" * 60]
        lines.append(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        )

    with open(filename, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))

    return filename
