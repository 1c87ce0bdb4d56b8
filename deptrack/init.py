import asyncio
from typing import Optional

from .runtime import Runtime, get_runtime

MODES = ("asyncio", "sync")


def init(mode: str = "asyncio", runtime: Optional[Runtime] = None) -> Runtime:
    """
    Configures how the scheduler of a runtime flushes its queue.

    asyncio: request a flush on the current event loop
    sync: flush right away each time a watcher is queued
    """
    runtime = get_runtime(runtime)
    if mode == "asyncio":
        runtime.async_mode = True
        runtime.scheduler.register_asyncio()
    elif mode == "sync":
        runtime.async_mode = False
    else:
        raise ValueError(f"Unknown mode {mode!r}, expected one of {MODES}")
    return runtime


def loop_factory():
    loop = asyncio.new_event_loop()
    if hasattr(asyncio, "eager_task_factory"):
        loop.set_task_factory(asyncio.eager_task_factory)
    return loop
