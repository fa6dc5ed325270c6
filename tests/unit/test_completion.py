"""
Unit tests for callback/future normalization.
"""

import asyncio

import pytest

from fileshare_provider.common.logging_config import get_operation_id
from fileshare_provider.storage.completion import Completion, create_completion, settle


class TestCompletion:
    """Tests for the Completion handler."""

    def test_requires_running_loop(self):
        """Completions belong to the running event loop."""
        with pytest.raises(RuntimeError):
            create_completion()

    @pytest.mark.asyncio
    async def test_future_resolves_with_result(self):
        """Without a callback, the future carries the result."""
        done = create_completion()
        done(None, {"success": True})

        assert await done.future == {"success": True}

    @pytest.mark.asyncio
    async def test_future_rejects_with_error(self):
        """Without a callback, the future carries the error."""
        done = create_completion()
        error = ValueError("boom")
        done(error)

        with pytest.raises(ValueError) as exc_info:
            await done.future
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_callback_receives_error_and_result(self):
        """With a callback there is no future and the callback gets both values."""
        received = []
        done = create_completion(lambda error, result: received.append((error, result)))

        assert done.future is None
        done(None, 42)

        assert received == [(None, 42)]

    @pytest.mark.asyncio
    async def test_settles_only_once(self):
        """Only the first call has an effect."""
        received = []
        done = Completion(lambda error, result: received.append((error, result)))

        done(None, "first")
        done(ValueError("second"))

        assert received == [(None, "first")]
        assert done.settled is True

    @pytest.mark.asyncio
    async def test_coroutine_callback_is_scheduled(self):
        """An async callback is run as a task."""
        finished = asyncio.get_running_loop().create_future()

        async def callback(error, result):
            await asyncio.sleep(0)
            finished.set_result(result)

        create_completion(callback)(None, "value")

        assert await asyncio.wait_for(finished, 1) == "value"

    @pytest.mark.asyncio
    async def test_defer_settles_on_next_tick(self):
        """defer() never settles synchronously."""
        done = create_completion()
        done.defer(None, "later")

        assert not done.future.done()
        assert await done.future == "later"


class TestSettle:
    """Tests for running coroutines into completions."""

    @pytest.mark.asyncio
    async def test_settle_passes_result(self):
        """The coroutine's return value resolves the completion."""
        async def work():
            return [1, 2, 3]

        done = create_completion()
        settle(done, work())

        assert await done.future == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_settle_passes_error_unchanged(self):
        """Errors reach the caller as the very same object."""
        error = ConnectionError("remote down")

        async def work():
            raise error

        received = asyncio.get_running_loop().create_future()
        settle(create_completion(lambda e, r: received.set_result((e, r))), work())

        assert await received == (error, None)

    @pytest.mark.asyncio
    async def test_settle_assigns_operation_id(self):
        """Each settled coroutine runs with its own operation id."""
        async def work():
            return get_operation_id()

        first, second = create_completion(), create_completion()
        settle(first, work())
        settle(second, work())

        first_id, second_id = await first.future, await second.future
        assert first_id and second_id
        assert first_id != second_id
