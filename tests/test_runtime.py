from unittest.mock import Mock

from deptrack import (
    Runtime,
    Watcher,
    computed,
    default_runtime,
    get_runtime,
    pop_target,
    push_target,
    reactive,
    scheduler,
    watch,
)


def test_get_runtime(runtime):
    assert get_runtime() is default_runtime
    assert get_runtime(runtime) is runtime
    assert default_runtime.scheduler is scheduler


def test_push_pop_target():
    watcher = Watcher(None, lambda: None, lazy=True)
    push_target(watcher)
    assert default_runtime.stack.target is watcher
    push_target(None)
    assert default_runtime.stack.target is None
    pop_target()
    assert default_runtime.stack.target is watcher
    pop_target()
    assert default_runtime.stack.target is None


def test_suspended_collection():
    state = reactive({"a": 1})

    def fn():
        push_target(None)
        try:
            state["a"]
        finally:
            pop_target()
        return None

    watcher = watch(fn, None, sync=True)
    assert watcher._deps == {}


def test_runtimes_are_independent(runtime):
    state = reactive({"a": 1}, runtime=runtime)
    other = reactive({"a": 1})
    assert state.__ob__.runtime is runtime
    assert other.__ob__.runtime is default_runtime

    cb = Mock()
    watcher = watch(lambda: state["a"], cb, runtime=runtime)
    assert watcher.runtime is runtime

    state["a"] = 2
    assert len(runtime.scheduler._queue) == 1
    assert not scheduler._queue

    runtime.scheduler.flush()
    cb.assert_called_once_with(2, 1)


def test_no_cross_talk(runtime):
    foreign = reactive({"a": 1}, runtime=runtime)

    # reads of another runtime's data are not tracked
    watcher = watch(lambda: foreign["a"], None, sync=True)
    assert watcher._deps == {}


def test_computed_in_runtime(runtime):
    state = reactive({"a": 1}, runtime=runtime)

    @computed(runtime=runtime)
    def double():
        return state["a"] * 2

    assert double() == 2
    state["a"] = 2
    assert double.__watcher__.dirty
    assert double() == 4


def test_runtime_reset():
    runtime = Runtime()
    runtime.scheduler.register_request_flush(lambda: None)
    state = reactive({"a": 1}, runtime=runtime)
    watch(lambda: state["a"], None, runtime=runtime)
    state["a"] = 2
    runtime.stack.push(None)

    runtime.reset()
    assert not runtime.scheduler._queue
    assert not runtime.scheduler.waiting
    assert len(runtime.observers) == 0
    assert len(runtime.stack) == 0


def test_sync_mode_per_runtime(runtime):
    runtime.async_mode = False
    state = reactive({"a": 1}, runtime=runtime)
    cb = Mock()
    watch(lambda: state["a"], cb, runtime=runtime)

    state["a"] = 2
    cb.assert_called_once_with(2, 1)
