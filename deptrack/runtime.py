"""
A runtime bundles everything that a reactive graph shares: the stack
of evaluating watchers, the scheduler and the registry of observed
values. Graphs in different runtimes never notify each other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional
from weakref import WeakValueDictionary

from .dep import TargetStack
from .scheduler import Scheduler

if TYPE_CHECKING:
    from .observer import Observer
    from .watcher import Watcher


class Runtime:
    __slots__ = (
        "__weakref__",
        "async_mode",
        "error_handler",
        "observers",
        "observing",
        "scheduler",
        "stack",
    )

    def __init__(self) -> None:
        self.stack = TargetStack()
        self.scheduler = Scheduler(self)
        # Observers by id of the value they observe. An observer holds a
        # strong reference to its value, so an id can't be reused while
        # its entry is present.
        self.observers: WeakValueDictionary[int, "Observer"] = WeakValueDictionary()
        self.observing = True
        self.async_mode = True
        self.error_handler: Optional[Callable[[BaseException, Any, str], Any]] = None

    def toggle_observing(self, value: bool) -> None:
        self.observing = value

    def reset(self) -> None:
        self.scheduler.clear()
        self.observers.clear()
        self.stack.clear()


# Construct default instance
default_runtime = Runtime()


def get_runtime(runtime: Optional[Runtime] = None) -> Runtime:
    return default_runtime if runtime is None else runtime


def push_target(
    target: Optional["Watcher"], runtime: Optional[Runtime] = None
) -> None:
    get_runtime(runtime).stack.push(target)


def pop_target(runtime: Optional[Runtime] = None) -> None:
    get_runtime(runtime).stack.pop()


def toggle_observing(value: bool, runtime: Optional[Runtime] = None) -> None:
    get_runtime(runtime).toggle_observing(value)
