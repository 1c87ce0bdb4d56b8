"""
Deps implement the classic observable pattern, and
are attached to observable datastructures.

The target stack records which watcher (if any) is currently
evaluating, so that reads performed during that evaluation
register with the right watcher.
"""

from __future__ import annotations

from itertools import count
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .runtime import Runtime
    from .watcher import Watcher

# Every Dep gets a unique ID which watchers use
# for set membership of their dependencies
_ids = count()


class TargetStack:
    __slots__ = ("_stack", "target")

    def __init__(self) -> None:
        self._stack: list[Optional["Watcher"]] = []
        self.target: Optional["Watcher"] = None

    def push(self, target: Optional["Watcher"]) -> None:
        """
        Makes target the current reader. Pushing None suspends
        dependency collection until the matching pop.
        """
        self._stack.append(target)
        self.target = target

    def pop(self) -> None:
        self._stack.pop()
        self.target = self._stack[-1] if self._stack else None

    def clear(self) -> None:
        self._stack.clear()
        self.target = None

    def __len__(self) -> int:
        return len(self._stack)


class Dep:
    __slots__ = ("__weakref__", "_subs", "id", "runtime")

    def __init__(self, runtime: "Runtime") -> None:
        self.id = next(_ids)
        self.runtime = runtime
        # dict used as an insertion ordered set
        self._subs: dict["Watcher", None] = {}

    def add_sub(self, sub: "Watcher") -> None:
        self._subs[sub] = None

    def remove_sub(self, sub: "Watcher") -> None:
        self._subs.pop(sub, None)

    def depend(self) -> None:
        target = self.runtime.stack.target
        if target is not None:
            target.add_dep(self)

    def notify(self) -> None:
        if not self._subs:
            return
        # snapshot: running a subscriber may add or remove subscribers
        subs = list(self._subs)
        if not self.runtime.async_mode:
            # the scheduler sorts the queue when flushing, but it
            # flushes immediately when not running async, so sort now
            subs.sort(key=lambda s: s.id)
        for sub in subs:
            sub.update()

    def __len__(self) -> int:
        return len(self._subs)

    def __contains__(self, sub: "Watcher") -> bool:
        return sub in self._subs
