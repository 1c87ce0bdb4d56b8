"""
watchers perform dependency tracking via functions acting on
observable datastructures, and optionally trigger callback when
a change is detected.
"""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Mapping, Sequence
from functools import partial, wraps
from itertools import count
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar, Union

from .dep import Dep
from .errors import handle_error, warn
from .observer import has_changed, is_primitive
from .proxy import Proxy
from .runtime import get_runtime

if TYPE_CHECKING:
    from .runtime import Runtime

T = TypeVar("T")
Watchable = Union[Callable[[], T], str, T]
WatchCallback = Union[Callable[[], Any], Callable[[T], Any], Callable[[T, T], Any]]


def watch(
    fn: Watchable[T],
    callback: WatchCallback[T] | None = None,
    sync: bool = False,
    deep: bool | None = None,
    immediate: bool = False,
    user: bool = False,
    runtime: Optional["Runtime"] = None,
) -> Watcher[T]:
    watcher = Watcher(
        None,
        fn,
        callback,
        sync=sync,
        lazy=False,
        deep=deep,
        user=user,
        runtime=runtime,
    )
    if immediate and watcher.callback:
        watcher.run_callback(watcher.value, None)
    return watcher


watch_effect = partial(watch, immediate=False, deep=True, callback=None)


def computed(
    _fn: Callable[[], T] | None = None,
    *,
    deep: bool = True,
    runtime: Optional["Runtime"] = None,
) -> Callable[[], T]:
    def decorator_computed(fn: Callable[[], T]) -> Callable[[], T]:
        """
        Create a watcher for an expression.
        Note: make sure fn doesn't need any arguments to run
        and that no reactive state is changed within the expression
        """
        watcher = Watcher(None, fn, lazy=True, deep=deep, runtime=runtime)
        stack = watcher.runtime.stack

        @wraps(fn)
        def getter():
            if watcher.dirty:
                watcher.evaluate()
            if stack.target is not None:
                watcher.depend()
            return watcher.value

        getter.__watcher__ = watcher
        return getter

    if _fn is None:
        return decorator_computed
    return decorator_computed(_fn)


def traverse(obj, seen=None):
    """
    Recursively traverse the whole tree to make sure
    that all values have been 'get'
    """
    # track which objects we have already seen to support(!) full traversal
    # of datastructures with cycles
    if seen is None:
        seen = set()
    if id(obj) in seen:
        return

    if isinstance(obj, Proxy):
        seen.add(id(obj))
        if isinstance(obj, Mapping):
            for key in obj:
                traverse(obj[key], seen)
        else:
            for value in obj:
                traverse(value, seen)
    elif isinstance(obj, (dict, list, tuple, set, frozenset)):
        # plain containers might hold reactive values
        if not obj:
            return
        seen.add(id(obj))
        for value in obj.values() if isinstance(obj, dict) else obj:
            if not is_primitive(value):
                traverse(value, seen)


_bail_re = re.compile(r"[^\w.$]")


def parse_path(path: str) -> Optional[Callable[[Any], Any]]:
    """
    Returns a getter for a simple dot-delimited path
    such as "user.name" or "items.0.title".
    """
    if _bail_re.search(path):
        return None
    segments = path.split(".")

    def getter(obj):
        for segment in segments:
            if obj is None:
                return None
            if isinstance(obj, Mapping):
                obj = obj.get(segment)
            elif isinstance(obj, Sequence) and segment.isdigit():
                index = int(segment)
                obj = obj[index] if index < len(obj) else None
            else:
                obj = getattr(obj, segment, None)
        return obj

    return getter


def noop(*args):
    return None


# Every Watcher gets a unique ID which is used to
# keep track of the order in which subscribers will
# be notified
_ids = count()

# Returned by Watcher.get when a user getter failed
_FAILED = object()


class WrongNumberOfArgumentsError(TypeError):
    """
    Error that is used to signal that the wrong number of arguments is
    used for the callback
    """

    pass


class Watcher(Generic[T]):
    __slots__ = (
        "__weakref__",
        "_deps",
        "_new_deps",
        "_number_of_callback_args",
        "active",
        "before",
        "callback",
        "callback_async",
        "deep",
        "dirty",
        "expression",
        "fn",
        "fn_async",
        "id",
        "lazy",
        "no_recurse",
        "runtime",
        "sync",
        "user",
        "value",
        "vm",
    )

    def __init__(
        self,
        vm: Any,
        fn: Watchable[T],
        callback: WatchCallback[T] | None = None,
        sync: bool = False,
        lazy: bool = False,
        deep: bool | None = None,
        user: bool = False,
        before: Callable[[], Any] | None = None,
        runtime: Optional["Runtime"] = None,
    ) -> None:
        """
        vm: View model that owns this watcher, passed to fn
        sync: Ignore the scheduler
        lazy: Only reevaluate when value is requested
        deep: Deep watch the watched value
        user: Report errors instead of raising them
        before: Called by the scheduler before each run
        callback: Method to call when value has changed
        """
        self.vm = vm
        if runtime is None and vm is not None:
            runtime = vm._runtime
        self.runtime = get_runtime(runtime)
        if vm is not None:
            vm._watchers.append(self)
        self.id = next(_ids)
        self.active = True

        if isinstance(fn, str):
            self.expression = fn
            getter = parse_path(fn)
            if getter is None:
                warn(
                    f'Failed watching path: "{fn}" Watcher only accepts simple'
                    " dot-delimited paths. For full control, use a function instead."
                )
                getter = noop
            elif vm is None:
                warn(
                    f'Failed watching path: "{fn}" Paths are resolved against'
                    " a view model. Without one, use a function instead."
                )
                getter = noop
            self.fn = partial(getter, vm)
            self.fn_async = False
        elif callable(fn):
            self.expression = getattr(fn, "__qualname__", repr(fn))
            self.fn = fn if vm is None else partial(fn, vm)
            self.fn_async = inspect.iscoroutinefunction(fn)
        else:
            self.expression = repr(fn)
            self.fn = lambda: fn
            self.fn_async = False
            # Default to deep watching when watching a proxy
            # or a list of proxies
            if deep is None:
                deep = True
        self._deps: dict[int, Dep] = {}
        self._new_deps: dict[int, Dep] = {}

        self.sync = sync
        self.callback = callback
        self.callback_async = inspect.iscoroutinefunction(callback)
        self.no_recurse = callback is None
        self.deep = bool(deep)
        self.user = user
        self.lazy = lazy
        self.before = before
        self.dirty = self.lazy
        self._number_of_callback_args = None
        if self.lazy:
            self.value = None
        else:
            value = self.get()
            self.value = None if value is _FAILED else value

    def update(self) -> None:
        if not self.active:
            return
        if self.lazy:
            self.dirty = True
            return

        if self.runtime.stack.target is self and self.no_recurse:
            return
        if self.sync:
            self.run()
        else:
            self.runtime.scheduler.queue(self)

    def evaluate(self) -> None:
        if not self.active:
            # torn down watchers keep their last value
            return
        value = self.get()
        if value is not _FAILED:
            self.value = value
        self.dirty = False

    def run(self) -> None:
        """Called by scheduler"""
        if not self.active:
            return
        value = self.get()
        if value is _FAILED:
            return
        if self.deep or not is_primitive(value) or has_changed(value, self.value):
            old_value = self.value
            self.value = value
            if self.callback:
                if self.user:
                    try:
                        self.run_callback(value, old_value)
                    except Exception as e:
                        handle_error(
                            e,
                            self.vm,
                            f'callback for watcher "{self.expression}"',
                            self.runtime,
                        )
                else:
                    self.run_callback(value, old_value)

    def run_callback(self, new, old) -> None:
        """
        Runs the callback. When the number of arguments is still unknown
        for the callback, it will fall into the try/except contstruct
        to figure out the right number of arguments.
        After running the callback one time, the number of arguments
        is known and the callback can be called with the correct
        amount of arguments.
        """
        if self._number_of_callback_args is not None:
            if self._number_of_callback_args == 1:
                maybe_coro = self.callback(new)
            elif self._number_of_callback_args == 2:
                maybe_coro = self.callback(new, old)
            elif self._number_of_callback_args == 0:
                maybe_coro = self.callback()

        else:
            try:
                maybe_coro = self._run_callback(new, old)
                self._number_of_callback_args = 2
            except WrongNumberOfArgumentsError:
                try:
                    maybe_coro = self._run_callback(new)
                    self._number_of_callback_args = 1
                except WrongNumberOfArgumentsError:
                    maybe_coro = self._run_callback()
                    self._number_of_callback_args = 0

        if self.callback_async and maybe_coro:
            loop = asyncio.get_event_loop_policy().get_event_loop()
            if not loop.is_running():
                loop.run_until_complete(maybe_coro)
            else:
                loop.create_task(maybe_coro)

    def _run_callback(self, *args) -> None:
        """
        Run the callback with the given arguments. When the callback
        raises a TypeError, check to see if the error results from
        within the callback or from calling the callback with the
        wrong number of arguments.
        Raises WrongNumberOfArgumentsError if callback was called
        with the wrong number of arguments.
        """
        try:
            return self.callback(*args)
        except TypeError as e:
            frames = inspect.trace()
            try:
                if len(frames) != 1:
                    raise
                raise WrongNumberOfArgumentsError(str(e)) from e
            finally:
                del frames

    def get(self) -> Any:
        """
        Evaluates the getter and collects the deps that
        were read during the evaluation.
        """
        stack = self.runtime.stack
        stack.push(self)
        try:
            value = self.fn()
            if self.fn_async and value:
                loop = asyncio.get_event_loop_policy().get_event_loop()
                if not loop.is_running():
                    value = loop.run_until_complete(value)
                else:
                    # deps are only collected up to the first await
                    # when the loop runs tasks eagerly
                    loop.create_task(value)
                    return None
            # "touch" every property so they are all tracked as
            # dependencies for deep watching
            if self.deep:
                traverse(value)
        except Exception as e:
            if not self.user:
                raise
            handle_error(
                e, self.vm, f'getter for watcher "{self.expression}"', self.runtime
            )
            value = _FAILED
        finally:
            stack.pop()
            self.cleanup_deps()
        return value

    def add_dep(self, dep: Dep) -> None:
        dep_id = dep.id
        if dep_id not in self._new_deps:
            self._new_deps[dep_id] = dep
            if dep_id not in self._deps:
                dep.add_sub(self)

    def cleanup_deps(self) -> None:
        for dep_id, dep in self._deps.items():
            if dep_id not in self._new_deps:
                dep.remove_sub(self)
        self._deps, self._new_deps = self._new_deps, self._deps
        self._new_deps.clear()

    def depend(self) -> None:
        """This function is used by other watchers to depend on everything
        this watcher depends on."""
        if self.runtime.stack.target is not None:
            for dep in self._deps.values():
                dep.depend()

    def teardown(self) -> None:
        """
        Unsubscribes from all deps. A torn down watcher will
        never run again.
        """
        if not self.active:
            return
        vm = self.vm
        # removing from the vm's list is skipped while the vm is
        # being destroyed, since it tears down all its watchers
        if vm is not None and not vm._is_being_destroyed:
            vm._watchers.remove(self)
        for dep in self._deps.values():
            dep.remove_sub(self)
        self._deps.clear()
        self.active = False
