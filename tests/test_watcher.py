import logging
from unittest.mock import Mock

import pytest

from deptrack import ReactivityWarning, Watcher, default_runtime, reactive, scheduler
from deptrack.watcher import computed, parse_path, watch


def test_watcher_active(noop_request_flush):
    a = reactive({"foo": "bar"})
    callback = Mock()

    watcher = watch(lambda: a["foo"], callback, immediate=False)

    callback.assert_not_called()

    a["foo"] = "baz"
    scheduler.flush()

    callback.assert_called_once_with("baz", "bar")

    callback.reset_mock()

    a["foo"] = "qux"
    # stop the watcher before the flush
    watcher.teardown()

    scheduler.flush()
    callback.assert_not_called()
    assert not watcher.active


def test_watcher_teardown(sync_mode):
    a = reactive({"foo": 1, "bar": [1]})
    callback = Mock()
    watcher = watch(lambda: (a["foo"], len(a["bar"])), callback)
    deps = list(watcher._deps.values())
    assert deps

    watcher.teardown()
    # idempotent
    watcher.teardown()

    for dep in deps:
        assert watcher not in dep

    a["foo"] = 2
    a["bar"].append(2)
    watcher.update()
    watcher.run()
    callback.assert_not_called()


def test_watcher_removed_icw_active(noop_request_flush):
    """
    A list of items is rendered and watchers are created for items
    within a reactive list.
    """
    a = reactive({"foo": ["bar", "baz"]})

    callback_args = []

    def callback(arg):
        callback_args.append(arg)

    watchers = []

    def create_watchers(new):
        for i in range(len(watchers), new):
            watchers.append(
                watch(
                    lambda i=i: a["foo"][i],
                    lambda new, old, i=i: callback(i),
                    deep=True,
                    immediate=True,
                )
            )

        while len(watchers) > new:
            # stop the watcher to make sure it won't trigger
            # and try to get a non-existing value from the list
            watchers.pop().teardown()

    _length_watcher = watch(  # noqa: F841
        lambda: len(a["foo"]),
        create_watchers,
        deep=False,
        immediate=True,
    )

    scheduler.flush()

    assert callback_args == [0, 1]
    callback_args.clear()

    a["foo"].pop()

    # popping the last item removes the last watcher, which then
    # should not try to get a["foo"][1] anymore
    scheduler.flush()

    assert callback_args == [0]


def test_watcher_dependencies_exact(sync_mode):
    state = reactive({"a": 1, "b": 2, "c": 3})
    ob = state.__ob__

    def fn():
        # duplicate reads register a single dependency
        return state["a"] + state["a"] + state["b"]

    watcher = watch(fn, None)
    assert set(watcher._deps) == {ob.slots["a"].dep.id, ob.slots["b"].dep.id}
    assert len(ob.slots["a"].dep) == 1


def test_watcher_unchanged_value_not_notified():
    state = reactive({"a": 1})
    getter = Mock(side_effect=lambda: state["a"])
    watch(getter, None, sync=True)
    assert getter.call_count == 1

    state["a"] = 1
    assert getter.call_count == 1

    state["a"] = 2
    assert getter.call_count == 2


def test_lazy_watcher():
    state = reactive({"a": 1})
    getter = Mock(side_effect=lambda: state["a"] * 2)

    watcher = Watcher(None, getter, lazy=True)
    assert watcher.dirty
    assert watcher.value is None
    getter.assert_not_called()

    watcher.evaluate()
    assert not watcher.dirty
    assert watcher.value == 2

    state["a"] = 2
    # lazy watchers only get dirty
    assert watcher.dirty
    assert watcher.value == 2
    assert getter.call_count == 1

    watcher.evaluate()
    assert watcher.value == 4
    assert getter.call_count == 2


def test_watcher_before_hook(noop_request_flush):
    state = reactive({"a": 1})
    calls = []
    watcher = Watcher(  # noqa: F841
        None,
        lambda: state["a"],
        lambda: calls.append("run"),
        before=lambda: calls.append("before"),
    )

    state["a"] = 2
    scheduler.flush()
    assert calls == ["before", "run"]


def test_watcher_sync_runs_inline():
    state = reactive({"a": 1})
    callback = Mock()
    watch(lambda: state["a"], callback, sync=True)

    state["a"] = 2
    callback.assert_called_once_with(2, 1)
    assert not scheduler._queue


def test_watcher_deep(sync_mode):
    state = reactive({"items": {"x": {"y": 1}}})
    shallow = Mock()
    deep = Mock()
    watch(lambda: state["items"], shallow)
    watch(lambda: state["items"], deep, deep=True)

    state["items"]["x"]["y"] = 2
    shallow.assert_not_called()
    deep.assert_called_once()

    state["items"]["z"] = 1
    # adding a key changes the shape of the value that was read
    shallow.assert_called_once()
    assert deep.call_count == 2


def test_watcher_composite_value_always_changed(sync_mode):
    state = reactive({"items": [1]})
    callback = Mock()
    watch(lambda: state["items"], callback)

    state["items"].append(2)
    # the same list, mutated in place
    callback.assert_called_once_with(state["items"], state["items"])


def test_watcher_no_recurse():
    state = reactive({"count": 0})
    calls = 0

    def bump():
        nonlocal calls
        calls += 1
        state["count"] = state["count"] + 1

    watcher = watch(bump, None, sync=True)  # noqa: F841
    assert calls == 1
    assert state["count"] == 1


def test_watcher_depend():
    state = reactive({"a": 1})
    inner = Watcher(None, lambda: state["a"], lazy=True)
    inner.evaluate()

    def outer_fn():
        inner.depend()
        return inner.value

    outer = watch(outer_fn, None, sync=True)
    assert set(outer._deps) == set(inner._deps)

    # without a reader depend is a no-op
    inner.depend()


def test_watch_path():
    class Owner:
        _runtime = default_runtime
        _is_being_destroyed = False

        def __init__(self):
            self._watchers = []
            self.state = reactive({"user": {"name": "a"}, "items": [{"title": "t"}]})

    owner = Owner()
    name = Watcher(owner, "state.user.name", sync=True)
    title = Watcher(owner, "state.items.0.title", sync=True)
    missing = Watcher(owner, "state.items.3.title", sync=True)
    assert name.value == "a"
    assert title.value == "t"
    assert missing.value is None
    assert owner._watchers == [name, title, missing]

    owner.state["user"]["name"] = "b"
    assert name.value == "b"
    owner.state["items"].append({"title": "u"})
    owner.state["items"].extend([{}, {"title": "v"}])
    assert missing.value == "v"


def test_watch_invalid_path():
    with pytest.warns(ReactivityWarning, match="Failed watching path"):
        watcher = Watcher(None, "a[0]")
    assert watcher.value is None


def test_watch_path_without_view_model():
    callback = Mock()
    with pytest.warns(ReactivityWarning, match="resolved against a view model"):
        watcher = watch("a.b", callback)
    assert watcher.value is None
    assert not watcher._deps


def test_torn_down_computed_keeps_value():
    state = reactive({"a": 1})
    calls = 0

    @computed
    def double():
        nonlocal calls
        calls += 1
        return state["a"] * 2

    assert double() == 2
    watcher = double.__watcher__

    state["a"] = 5
    assert watcher.dirty
    watcher.teardown()

    assert double() == 2
    assert calls == 1
    assert not watcher._deps
    assert not state.__ob__.slots["a"].dep._subs


def test_parse_path():
    assert parse_path("a b") is None
    assert parse_path("a()") is None
    getter = parse_path("a.b")
    assert getter({"a": {"b": 1}}) == 1
    assert getter({"a": None}) is None
    assert getter({}) is None


def test_user_watcher_getter_error(sync_mode, caplog):
    state = reactive({"a": 1})

    def fn():
        if state["a"] > 1:
            raise ValueError("boom")
        return state["a"]

    callback = Mock()
    watcher = Watcher(None, fn, callback, user=True)
    assert watcher.value == 1

    with caplog.at_level(logging.ERROR, logger="deptrack"):
        state["a"] = 2

    # value stays, callback doesn't fire
    assert watcher.value == 1
    callback.assert_not_called()
    assert 'getter for watcher "' in caplog.text
    assert "boom" in caplog.text

    # still tracking
    state["a"] = 0
    callback.assert_called_once_with(0, 1)


def test_user_watcher_callback_error(sync_mode):
    state = reactive({"a": 1})
    handler = Mock()
    default_runtime.error_handler = handler
    error = RuntimeError("boom")

    def callback():
        raise error

    watcher = Watcher(None, lambda: state["a"], callback, user=True)
    state["a"] = 2

    handler.assert_called_once_with(
        error, None, f'callback for watcher "{watcher.expression}"'
    )
    assert watcher.value == 2


def test_non_user_watcher_getter_error():
    state = reactive({"a": 1})

    def fn():
        if state["a"] > 1:
            raise ValueError("boom")
        return state["a"]

    watcher = Watcher(None, fn, sync=True)
    with pytest.raises(ValueError):
        state["a"] = 2
    # the stack is restored
    assert default_runtime.stack.target is None
    assert len(default_runtime.stack) == 0
    assert watcher.value == 1


def test_initial_getter_error_propagates():
    with pytest.raises(ZeroDivisionError):
        Watcher(None, lambda: 1 / 0)
    assert len(default_runtime.stack) == 0
