"""Logging configuration and utilities using Loguru.

This module provides centralized logging setup for the Loci enrichment engine,
including structured logging with Loguru and an error handling decorator for
calls that cross the catalog service boundary.

Public API:
----------
setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru logger for the application

get_logger(name: str) -> Logger
    Get a context-aware logger for your module
    Usage: logger = get_logger(__name__)

log_startup_info() -> None
    Log engine configuration at startup

@resilient_operation(operation_name: str, fallback=None, absorb=())
    Decorator for handling errors in external API calls

Quick Start:
-----------
1. Get a logger for your module:
    ```python
    from loci.config import get_logger
    logger = get_logger(__name__)
    ```

2. Log with structured context:
    ```python
    logger.info("Flushing batch", batch_size=12)
    ```

3. Absorb catalog failures at the boundary:
    ```python
    @resilient_operation("spotify_search", fallback=None, absorb=(CatalogError,))
    async def search(title: str, artist: str):
        ...
    ```
"""

from collections.abc import Awaitable, Callable
import functools
from pathlib import Path
import sys
from typing import Any

from loguru import logger

from .settings import settings

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def setup_loguru_logger(verbose: bool = False) -> None:
    """Configure Loguru logger for the application.

    Args:
        verbose: Enable verbose logging with debug level and detailed tracebacks

    Note:
        - Removes default logger and sets up console and file handlers
        - Console format is colorized and simplified
        - File format is serialized JSON with rotation and retention
    """
    logger.remove()

    log_file_path = Path(settings.logging.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    # Add contextual info to all log records
    logger.configure(extra={"service": "loci", "module": "root"})

    # -------------------------------------------------------------------------
    # Console Handler
    # -------------------------------------------------------------------------
    console_level = "DEBUG" if verbose else settings.logging.console_level
    logger.add(
        sink=sys.stdout,
        level=console_level,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:"
            "<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )

    # -------------------------------------------------------------------------
    # File Handler
    # -------------------------------------------------------------------------
    enqueue_logs = not settings.logging.real_time_debug
    logger.add(
        sink=str(log_file_path),
        level=settings.logging.file_level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {process}:{thread} | {extra[service]} | {extra[module]} | {name}:{function}:{line} | {message}",
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=enqueue_logs,
        catch=True,
        serialize=True,
    )


# =============================================================================
# LOGGER FACTORY
# =============================================================================


def get_logger(name: str) -> Any:  # Use Any for Loguru logger type
    """Get a pre-configured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Loguru logger bound with module and service context
    """
    return logger.bind(
        module=name,
        service="loci",
    )


# =============================================================================
# STARTUP LOGGING
# =============================================================================


def log_startup_info() -> None:
    """Log engine configuration on startup.

    Displays a banner and logs every configuration value at debug level.
    Credentials are masked.
    """
    local_logger = get_logger(__name__)
    separator = "=" * 50

    local_logger.info("{}", separator)
    local_logger.info("Loci enrichment engine")
    local_logger.info("{}", separator)

    local_logger.debug("Configuration:")
    config_dict = settings.model_dump()
    for section_name, section_values in config_dict.items():
        local_logger.debug("  {}:", section_name.upper())
        for key, value in section_values.items():
            if section_name == "credentials" and "secret" in key and value:
                value = "***"
            elif isinstance(value, Path):
                value = str(value)
            local_logger.debug("    {}: {}", key.upper(), value)


# =============================================================================
# ERROR HANDLING DECORATORS
# =============================================================================


def resilient_operation(
    operation_name: str | None = None,
    *,
    fallback: Any = None,
    absorb: tuple[type[BaseException], ...] = (),
):
    """Decorator for service boundary operations with standardized error handling.

    Exceptions listed in ``absorb`` are logged as warnings and replaced by
    ``fallback``. Anything else is logged with its traceback and re-raised.

    Args:
        operation_name: Optional name for the operation (defaults to function name)
        fallback: Value returned when an absorbed exception is raised. Callables
            are invoked to build a fresh value (e.g. ``list``).
        absorb: Exception types that degrade to ``fallback``

    Example:
        >>> @resilient_operation("spotify_history", fallback=list, absorb=(CatalogError,))
        >>> async def fetch_history(start, end):
        >>>     return await spotify.recently_played(start, end)
    """

    def decorator(
        func: Callable[..., Awaitable[Any]],
    ) -> Callable[..., Awaitable[Any]]:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except absorb as e:
                logger.warning(
                    f"{op_name} failed: {e!s}",
                    operation=op_name,
                    error_type=type(e).__name__,
                )
                return fallback() if callable(fallback) else fallback
            except Exception as e:
                logger.exception(f"Error in {op_name}: {e!s}")
                raise

        return wrapper

    return decorator
