"""Configuration module for Loci.

This module provides a type-safe configuration system using Pydantic Settings
plus Loguru-based logging helpers.

Public API:
----------
settings: Settings instance
    Pydantic settings object with nested configuration

get_config(key: str, default=None) -> Any
    Flat-key configuration access function

get_logger(name: str) -> Logger
    Get a context-aware logger for your module

setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru logger for the application

resilient_operation(operation_name: str, fallback=None, absorb=())
    Decorator for handling errors in external API calls

log_startup_info() -> None
    Log engine configuration at startup

Usage:
------
```python
from loci.config import settings
batch_size = settings.enrichment.batch_size

from loci.config import get_logger
logger = get_logger(__name__)
logger.info("Starting reconciliation")
```
"""

from .logging import (
    get_logger,
    log_startup_info,
    resilient_operation,
    setup_loguru_logger,
)
from .settings import Settings, get_config, settings

__all__ = [
    "Settings",
    "get_config",
    "get_logger",
    "log_startup_info",
    "resilient_operation",
    "settings",
    "setup_loguru_logger",
]
