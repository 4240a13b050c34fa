"""Tests for run_cancellable()."""
import asyncio

import pytest

from handoff.cancellation import OperationCancelled, run_cancellable


class TestRunCancellable:
    """Tests for run_cancellable(): abandon a call when the event fires."""

    def test_no_event_awaits_directly(self):
        """Without an event the result passes through."""
        async def call():
            return 42

        assert asyncio.run(run_cancellable(call())) == 42

    def test_completes_before_cancel(self):
        """A call that finishes first returns its result."""
        async def scenario():
            async def call():
                return "done"
            return await run_cancellable(call(), asyncio.Event())

        assert asyncio.run(scenario()) == "done"

    def test_exception_propagates(self):
        """Errors from the call are re-raised unchanged."""
        async def scenario():
            async def call():
                raise ValueError("boom")
            await run_cancellable(call(), asyncio.Event())

        with pytest.raises(ValueError, match="boom"):
            asyncio.run(scenario())

    def test_preset_event(self):
        """An already-set event cancels without running the call."""
        started = []

        async def scenario():
            async def call():
                started.append(True)
            event = asyncio.Event()
            event.set()
            await run_cancellable(call(), event)

        with pytest.raises(OperationCancelled):
            asyncio.run(scenario())
        assert started == []

    def test_event_during_call(self):
        """Setting the event abandons the in-flight call."""
        cancelled = []

        async def scenario():
            async def call():
                try:
                    await asyncio.sleep(3600)
                except asyncio.CancelledError:
                    cancelled.append(True)
                    raise
            event = asyncio.Event()
            asyncio.get_running_loop().call_later(0.01, event.set)
            await run_cancellable(call(), event)

        with pytest.raises(OperationCancelled):
            asyncio.run(scenario())
        assert cancelled == [True]
