"""
The scheduler queues up and deduplicates re-evaluation of Watchers
and should be integrated in the event loop of your choosing.
"""

from __future__ import annotations

import asyncio
from bisect import bisect
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from .errors import warn

if TYPE_CHECKING:
    from .runtime import Runtime
    from .watcher import Watcher

MAX_UPDATE_COUNT = 100


class Scheduler:
    __slots__ = (
        "__weakref__",
        "_activated",
        "_queue",
        "_queue_indices",
        "circular",
        "detect_cycles",
        "flushing",
        "has",
        "index",
        "request_flush",
        "runtime",
        "waiting",
    )

    def __init__(self, runtime: "Runtime"):
        self.runtime = runtime
        self._queue: list["Watcher"] = []
        self._queue_indices: list[int] = []
        self._activated: list[Any] = []
        self.flushing = False
        self.has = set()
        self.circular = defaultdict(int)
        self.index = 0
        self.waiting = False
        self.request_flush = self.request_flush_raise
        self.detect_cycles = True

    def request_flush_raise(self):
        """
        Error raising default request flusher.
        """
        raise ValueError("No flush request handler registered")

    def register_request_flush(self, callback):
        """
        Register callback for registering a call to flush
        """
        self.request_flush = callback

    def request_flush_asyncio(self):
        loop = asyncio.get_event_loop_policy().get_event_loop()
        loop.call_soon(self.flush)

    def register_asyncio(self):
        """
        Utility function for integration with asyncio
        """
        self.register_request_flush(self.request_flush_asyncio)

    def flush(self):
        """
        Flush the queue to evaluate all queued watchers.
        You can call this manually, or register a callback
        to request to perform the flush.

        The queue is iterated by index on purpose: watchers that
        are queued while flushing are spliced into the remaining
        part of the queue and run within this same flush.
        """
        if not self._queue:
            self.waiting = False
            return

        self.flushing = True
        self.waiting = False
        # Sorting makes sure that:
        # 1. watchers are updated from parent to child, because
        #    parents are always created before their children
        # 2. watchers declared before others (e.g. user watchers
        #    before a render watcher) also run before them
        self._queue.sort(key=lambda s: s.id)
        self._queue_indices.sort()

        try:
            while self.index < len(self._queue):
                watcher = self._queue[self.index]
                watcher_id = watcher.id
                # A watcher that keeps rescheduling itself (directly or
                # through other watchers) runs at most MAX_UPDATE_COUNT
                # times per flush
                if self.detect_cycles:
                    if self.circular[watcher_id] >= MAX_UPDATE_COUNT:
                        warn(
                            "You may have an infinite update loop in watcher"
                            f" with expression {watcher.expression!r}",
                            stacklevel=2,
                        )
                        break
                    self.circular[watcher_id] += 1

                if watcher.before is not None:
                    watcher.before()
                self.has.discard(watcher_id)
                watcher.run()
                self.index += 1
        except BaseException:
            self.clear()
            raise

        # Keep copies of the post flush queues before resetting state
        activated_queue = self._activated[:]
        updated_queue = self._queue[: self.index]

        self.clear()

        call_activated_hooks(activated_queue)
        call_updated_hooks(updated_queue)

    def clear(self):
        self._queue.clear()
        self._queue_indices.clear()
        self._activated.clear()
        self.flushing = False
        self.waiting = False
        self.has.clear()
        self.circular.clear()
        self.index = 0

    def queue(self, watcher: "Watcher"):
        if watcher.id in self.has:
            return

        self.has.add(watcher.id)
        if not self.flushing:
            self._queue.append(watcher)
            self._queue_indices.append(watcher.id)
            if not self.waiting:
                self.waiting = True
                if not self.runtime.async_mode:
                    self.flush()
                else:
                    self.request_flush()
        else:
            # If already flushing, splice the watcher based on its id
            # If already past its id, it will be run next immediately.
            # Last part of the queue should stay ordered, in order to
            # properly make use of bisect and avoid deadlocks
            i = bisect(self._queue_indices[self.index + 1 :], watcher.id)
            i += self.index + 1
            self._queue.insert(i, watcher)
            self._queue_indices.insert(i, watcher.id)

    def queue_activated(self, vm):
        """
        Queues a view model that was (re)activated during this flush.
        Its activated hook is called once the flush is done.
        """
        # Mark as active here so that a render function can rely on
        # checking whether it's in an inactive tree
        vm._inactive = False
        self._activated.append(vm)


def call_activated_hooks(queue):
    for vm in queue:
        vm._inactive = True
        vm.activate()


def call_updated_hooks(queue):
    # Reversed so that children settle before their parents
    for watcher in reversed(queue):
        vm = watcher.vm
        if (
            vm is not None
            and vm._watcher is watcher
            and vm._is_mounted
            and not vm._is_destroyed
        ):
            vm.call_hook("updated")
