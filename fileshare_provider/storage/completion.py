"""
Callback/future normalization for provider methods.

Every provider method accepts an optional ``callback(error, result)``. When
it is omitted the method returns an ``asyncio.Future`` instead; both are fed
from a single ``Completion`` so the two conventions can never disagree.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from fileshare_provider.common.logging_config import set_operation_id

logger = logging.getLogger(__name__)

# Tasks are only weakly referenced by the event loop
_pending: Set[asyncio.Task] = set()


def track_task(task: asyncio.Task) -> asyncio.Task:
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


class Completion:
    """
    Single-shot completion handler.

    Call it as ``completion(error)`` or ``completion(None, result)``. Only the
    first call has any effect.
    """

    def __init__(self, callback: Optional[Callable] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()
        self.callback = callback
        self.future: Optional[asyncio.Future] = (
            None if callback is not None else self.loop.create_future()
        )
        self.settled = False

    def __call__(self, error: Optional[BaseException] = None, result: Any = None) -> None:
        if self.settled:
            logger.debug("Ignoring repeated completion", exc_info=error)
            return
        self.settled = True

        if self.future is not None:
            if self.future.cancelled():
                return
            if error is not None:
                self.future.set_exception(error)
            else:
                self.future.set_result(result)
            return

        outcome = self.callback(error, result)
        if inspect.isawaitable(outcome):
            track_task(asyncio.ensure_future(outcome))

    def defer(self, error: Optional[BaseException] = None, result: Any = None) -> None:
        """Settle on the next loop iteration instead of now."""
        self.loop.call_soon(self, error, result)


def create_completion(callback: Optional[Callable] = None) -> Completion:
    """Create the completion for one provider call."""
    return Completion(callback)


def settle(completion: Completion, coro: Awaitable) -> asyncio.Task:
    """
    Run ``coro`` as a task and settle ``completion`` with its outcome.

    Errors raised by the coroutine are handed to the completion unchanged.
    """
    async def runner():
        set_operation_id()
        try:
            result = await coro
        except asyncio.CancelledError:
            completion(asyncio.CancelledError())
            raise
        except Exception as exc:
            completion(exc)
        else:
            completion(None, result)

    return track_task(completion.loop.create_task(runner()))

