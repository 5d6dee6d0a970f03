from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


async def maybe_await(value: Any) -> Any:
    """Await `value` if it's awaitable, otherwise return it directly.

    SDK list calls are synchronous for google-cloud and coroutines for
    aioboto3/azure aio; tests also swap them for AsyncMocks.
    """
    if inspect.isawaitable(value):
        return await value
    return value


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking SDK call in a worker thread so the event loop keeps ticking.

    Cancelling the awaiting task abandons the call; the thread finishes on
    its own and its result is discarded.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
