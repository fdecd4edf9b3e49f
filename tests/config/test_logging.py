"""Tests for Loguru setup and the resilient_operation decorator."""

import sys
from unittest.mock import patch

from loguru import logger
import pytest

from loci.config import (
    get_logger,
    log_startup_info,
    resilient_operation,
    settings,
    setup_loguru_logger,
)
from loci.domain.errors import NetworkFailure


@pytest.fixture
def captured():
    """Collect formatted log lines emitted while the test runs."""
    lines: list[str] = []
    handler_id = logger.add(lines.append, level="DEBUG", format="{level} {message}")
    yield lines
    logger.remove(handler_id)


class TestResilientOperation:
    async def test_absorbed_error_returns_fallback(self, captured):
        @resilient_operation("lookup", fallback=None, absorb=(NetworkFailure,))
        async def lookup():
            raise NetworkFailure("offline", status=503)

        assert await lookup() is None
        assert any(line.startswith("WARNING lookup failed: offline") for line in captured)

    async def test_callable_fallback_builds_fresh_value(self):
        @resilient_operation(fallback=list, absorb=(NetworkFailure,))
        async def history():
            raise NetworkFailure("offline")

        first = await history()
        second = await history()

        assert first == [] and second == []
        assert first is not second

    async def test_other_errors_propagate(self, captured):
        @resilient_operation("lookup", absorb=(NetworkFailure,))
        async def lookup():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await lookup()
        assert any(line.startswith("ERROR Error in lookup") for line in captured)

    async def test_preserves_return_value_and_name(self):
        @resilient_operation(absorb=(NetworkFailure,))
        async def answer():
            return 42

        assert await answer() == 42
        assert answer.__name__ == "answer"


class TestStartupLogging:
    def test_masks_client_secret(self, captured):
        with patch.object(settings.credentials, "spotify_client_secret", "hunter2"):
            log_startup_info()

        assert not any("hunter2" in line for line in captured)
        assert any("SPOTIFY_CLIENT_SECRET: ***" in line for line in captured)
        assert any("BATCH_SIZE: 50" in line for line in captured)


class TestSetup:
    def test_creates_log_directory_and_binds_context(self, tmp_path):
        log_file = tmp_path / "logs" / "loci.log"
        try:
            with patch.object(settings.logging, "log_file", log_file):
                setup_loguru_logger(verbose=True)
            lines: list[str] = []
            logger.add(lines.append, format="{extra[service]}|{extra[module]}|{message}")

            get_logger("loci.tests").info("hello")

            assert log_file.parent.is_dir()
            assert lines == ["loci|loci.tests|hello\n"]
        finally:
            logger.remove()
            logger.add(sys.stderr, level="WARNING")
