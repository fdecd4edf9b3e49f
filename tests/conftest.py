import sys

from loguru import logger
import pytest


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    """Keep test output readable; only warnings and above reach stderr."""
    logger.remove()
    logger.add(sys.stderr, level="WARNING")
