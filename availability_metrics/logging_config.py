"""
Logging configuration for Availability Metrics.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports iteration IDs so every
log line emitted while a scheduler iteration runs can be tied back to it.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for the scheduler iteration ID
iteration_id_var: ContextVar[Optional[str]] = ContextVar("iteration_id", default=None)


def add_iteration_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add iteration ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with iteration_id if available
    """
    iteration_id = iteration_id_var.get()
    if iteration_id:
        event_dict["iteration_id"] = iteration_id
    return event_dict


def set_iteration_id(iteration_id: Optional[str] = None) -> str:
    """
    Set iteration ID for the current context.

    Args:
        iteration_id: Optional iteration ID. If None, generates a short random ID.

    Returns:
        The iteration ID that was set
    """
    if iteration_id is None:
        iteration_id = uuid.uuid4().hex[:12]
    iteration_id_var.set(iteration_id)
    return iteration_id


def clear_iteration_id() -> None:
    """Clear iteration ID from the current context."""
    iteration_id_var.set(None)


def get_iteration_id() -> Optional[str]:
    """Get the current iteration ID from context."""
    return iteration_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for Availability Metrics.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_iteration_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    return structlog.get_logger(name)


def log_probe_outcome(
    logger: structlog.stdlib.BoundLogger,
    check: str,
    probe_kind: str,
    status: str,
    reason: str = "",
    error_kind: str = "",
    duration_ms: Optional[float] = None,
    **kwargs: Any,
) -> None:
    """
    Log the outcome of a single probe execution.

    Successful checks are logged at info level, failures at error level.

    Args:
        logger: Logger instance
        check: Configured check name
        probe_kind: Probe variant ("git", "http", "registry")
        status: Outcome status ("Succeeded" or "Failed")
        reason: Failure reason, empty on success
        error_kind: Error taxonomy label, empty on success
        duration_ms: Time the probe took in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "probe_outcome",
        "check": check,
        "probe_kind": probe_kind,
        "status": status,
    }

    if reason:
        log_data["reason"] = reason

    if error_kind:
        log_data["error_kind"] = error_kind

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(kwargs)

    if reason:
        logger.error("probe_failed", **log_data)
    else:
        logger.info("probe_succeeded", **log_data)
