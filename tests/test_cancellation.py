import asyncio

import pytest

from ollama_bridge.cancellation import CancellationToken, guard
from ollama_bridge.errors import Cancelled, OllamaBridgeError


class TestCancellationToken:
    def test_initial_state(self):
        token = CancellationToken()

        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()

        assert token.cancelled
        with pytest.raises(Cancelled) as info:
            token.raise_if_cancelled()
        assert isinstance(info.value, OllamaBridgeError)

    @pytest.mark.asyncio
    async def test_wait_returns_result(self):
        token = CancellationToken()

        async def answer():
            return 42

        assert await token.wait(answer()) == 42

    @pytest.mark.asyncio
    async def test_wait_propagates_errors(self):
        async def fail():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await CancellationToken().wait(fail())

    @pytest.mark.asyncio
    async def test_already_cancelled_never_runs(self):
        token = CancellationToken()
        token.cancel()
        ran = []

        async def work():
            ran.append(True)

        with pytest.raises(Cancelled):
            await token.wait(work())
        assert ran == []

    @pytest.mark.asyncio
    async def test_cancel_abandons_pending_operation(self):
        token = CancellationToken()
        abandoned = asyncio.Event()

        async def forever():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                abandoned.set()
                raise

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        with pytest.raises(Cancelled):
            await token.wait(forever())

        assert abandoned.is_set()

    @pytest.mark.asyncio
    async def test_native_cancellation_cancels_operation(self):
        token = CancellationToken()
        abandoned = asyncio.Event()
        started = asyncio.Event()

        async def forever():
            started.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                abandoned.set()
                raise

        outer = asyncio.create_task(token.wait(forever()))
        await started.wait()
        outer.cancel()

        with pytest.raises(asyncio.CancelledError):
            await outer
        await asyncio.sleep(0)
        assert abandoned.is_set()


@pytest.mark.asyncio
async def test_guard_without_token():
    async def answer():
        return "plain"

    assert await guard(answer(), None) == "plain"
