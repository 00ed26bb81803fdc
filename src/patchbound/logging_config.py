"""
Centralized logging configuration using rich.logging.

Applications embedding patchbound call setup_logging() once at startup to get
rich formatted output from every component of the control plane (parameter
sync, transport, MIDI routing, message ports).
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Root of every logger in the package
PACKAGE_LOGGER = "patchbound"

# Chatty dependencies of the debug surface (per-connection INFO records)
THIRD_PARTY_LOGGERS = ("websockets", "asyncio")

# Global flag to track if logging has been configured
_logging_configured = False


def setup_logging(
    level: int = logging.INFO,
    show_time: bool = True,
    show_path: bool = True,
    rich_tracebacks: bool = True,
    console: Optional[Console] = None,
    third_party_level: int = logging.WARNING,
) -> None:
    """
    Configure rich logging for the patchbound library.

    Subsequent calls are ignored to avoid duplicate handlers.

    Args:
        level: Logging level (logging.DEBUG, logging.INFO, etc.)
        show_time: Show timestamp in log messages
        show_path: Show file path in log messages
        rich_tracebacks: Enable rich formatted tracebacks for exceptions
        console: Optional rich Console instance (creates a stderr console if None)
        third_party_level: Level for the websockets and asyncio loggers

    Example:
        >>> from patchbound.logging_config import setup_logging
        >>> import logging
        >>> setup_logging(level=logging.DEBUG)
    """
    global _logging_configured

    if _logging_configured:
        return

    if console is None:
        console = Console(stderr=True)

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        markup=True,
        log_time_format="[%X]",
    )

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,  # Override any existing configuration
    )

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_module_level(module_name: str, level: int) -> None:
    """
    Set logging level for a patchbound module.

    Short names are resolved inside the package, so "midi_router" and
    "patchbound.midi_router" name the same logger. An empty name targets the
    package root.

    Args:
        module_name: Module name, relative to the package or fully qualified
        level: Logging level (logging.DEBUG, logging.INFO, etc.)

    Example:
        >>> set_module_level("sync", logging.DEBUG)
    """
    logging.getLogger(qualified_name(module_name)).setLevel(level)


def qualified_name(module_name: str) -> str:
    """Logger name for a module, relative to the package unless already qualified."""
    if not module_name:
        return PACKAGE_LOGGER
    if module_name == PACKAGE_LOGGER or module_name.startswith(f"{PACKAGE_LOGGER}."):
        return module_name
    return f"{PACKAGE_LOGGER}.{module_name}"
