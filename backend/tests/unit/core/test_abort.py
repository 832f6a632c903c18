"""
Unit tests for abort signalling and the error taxonomy.
"""

import asyncio

import pytest

from legajos.core.abort import AbortController
from legajos.core.exceptions import (
    CancellationError,
    RemoteNotFoundError,
    TerminalRemoteError,
    TransientRemoteError,
    is_abort_error,
)


class TestAbortController:
    """Test abort signalling."""

    def test_abort_is_idempotent(self):
        controller = AbortController()

        controller.abort(reason="first")
        controller.abort(reason="second")

        assert controller.signal.aborted
        assert controller.signal.reason == "first"

    def test_throw_if_aborted(self):
        controller = AbortController()
        controller.signal.throw_if_aborted()

        controller.abort(reason="superseded")

        with pytest.raises(CancellationError) as exc_info:
            controller.signal.throw_if_aborted()
        assert exc_info.value.reason == "superseded"

    @pytest.mark.asyncio
    async def test_race_returns_result(self):
        controller = AbortController()

        async def work():
            return 42

        assert await controller.signal.race(work()) == 42

    @pytest.mark.asyncio
    async def test_race_interrupted_by_abort(self):
        controller = AbortController()
        cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        race = asyncio.ensure_future(controller.signal.race(work()))
        await asyncio.sleep(0.01)
        controller.abort()

        with pytest.raises(CancellationError):
            await race
        await asyncio.sleep(0.01)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_race_on_aborted_signal_skips_work(self):
        controller = AbortController()
        controller.abort()
        started = []

        async def work():
            started.append(True)

        with pytest.raises(CancellationError):
            await controller.signal.race(work())
        assert started == []

    @pytest.mark.asyncio
    async def test_race_propagates_work_errors(self):
        controller = AbortController()

        async def work():
            raise TransientRemoteError(status=503)

        with pytest.raises(TransientRemoteError):
            await controller.signal.race(work())


class TestErrorTaxonomy:
    """Test error attributes and abort detection."""

    def test_remote_error_details(self):
        cause = OSError("reset")
        error = TransientRemoteError(
            message="Network error", status=502, url="http://x", original_error=cause
        )

        assert error.status == 502
        assert error.url == "http://x"
        assert error.error_code == "REMOTE_TRANSIENT_ERROR"
        assert error.details["status"] == 502
        assert error.details["original_error_type"] == "OSError"
        assert error.__cause__ is cause

    def test_not_found_is_terminal(self):
        error = RemoteNotFoundError(url="http://x")

        assert isinstance(error, TerminalRemoteError)
        assert error.status == 404
        assert error.error_code == "REMOTE_NOT_FOUND"

    def test_is_abort_error(self):
        class ForeignAbort(Exception):
            name = "AbortError"

        assert is_abort_error(CancellationError())
        assert is_abort_error(ForeignAbort())
        assert not is_abort_error(TransientRemoteError())
        assert not is_abort_error(asyncio.TimeoutError())
