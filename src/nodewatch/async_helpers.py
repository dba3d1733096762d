"""Start coroutine work from synchronous callbacks."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, Optional, Union

CoroutineFactory = Callable[[], Awaitable[Any]]


def safely_schedule_coroutine(work: Union[Coroutine[Any, Any, Any], CoroutineFactory]) -> Optional[asyncio.Task]:
    """
    Run *work* as a task on the running loop and return the task.

    *work* may be a coroutine or a zero-argument factory; a factory is only
    called once it is known where the coroutine will run. Outside an event
    loop the coroutine runs to completion before returning ``None``.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    coro = work if asyncio.iscoroutine(work) else _call_factory(work)
    if loop is None:
        asyncio.run(coro)
        return None
    return loop.create_task(coro)


def _call_factory(factory: Any) -> Coroutine[Any, Any, Any]:
    if not callable(factory):
        raise TypeError(f"Expected a coroutine or coroutine factory, got {type(factory).__name__}")
    coro = factory()
    if not asyncio.iscoroutine(coro):
        raise TypeError(f"{factory!r} did not return a coroutine")
    return coro


__all__ = ["safely_schedule_coroutine"]
