"""Tests for the timeout wrapper."""

import asyncio

import pytest

from schemamcp.core.errors import OperationTimeoutError
from schemamcp.utils import with_timeout


class TestWithTimeout:
    """Tests for with_timeout."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def quick():
            return 42

        assert await with_timeout(quick(), 1000) == 42

    @pytest.mark.asyncio
    async def test_timeout_runs_callback(self):
        abandoned = []

        async def on_timeout():
            abandoned.append(True)

        with pytest.raises(OperationTimeoutError) as exc_info:
            await with_timeout(asyncio.sleep(1), 10, label="Query", on_timeout=on_timeout)

        assert abandoned == [True]
        assert exc_info.value.to_dict() == {
            "error": "TIMEOUT",
            "message": "Query timed out after 10ms",
            "timeout_ms": 10,
        }

    @pytest.mark.asyncio
    async def test_failing_callback_still_times_out(self):
        async def on_timeout():
            raise RuntimeError("rollback failed")

        with pytest.raises(OperationTimeoutError):
            await with_timeout(asyncio.sleep(1), 10, on_timeout=on_timeout)

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        async def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await with_timeout(broken(), 1000)
