"""Cooperative cancellation for model and git calls.

Callers thread one asyncio.Event through every awaitable call. Setting it
abandons whatever call is in flight; nothing new starts afterwards.
"""
import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised when the cancel event fires before the call completes."""


async def run_cancellable(awaitable: Awaitable[T],
                          cancel_event: Optional[asyncio.Event] = None) -> T:
    """Await `awaitable`, abandoning it if `cancel_event` is set first.

    Raises:
        OperationCancelled: The event was set before or during the call
    """
    if cancel_event is None:
        return await awaitable

    call = asyncio.ensure_future(awaitable)
    if cancel_event.is_set():
        call.cancel()
        raise OperationCancelled()

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        call.cancel()
        raise
    finally:
        waiter.cancel()

    if call.done():
        return call.result()

    call.cancel()
    try:
        await call
    except asyncio.CancelledError:
        pass
    raise OperationCancelled()
