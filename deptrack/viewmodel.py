"""
A view model hosts reactive data, computed properties, watchers
and a render watcher, and exposes them as attributes.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from . import observer
from .errors import handle_error, invoke_with_error_handling, warn
from .runtime import Runtime, get_runtime
from .watcher import Watcher

T = TypeVar("T", bound=Callable)

HOOKS = (
    "before_mount",
    "mounted",
    "before_update",
    "updated",
    "activated",
    "deactivated",
    "before_destroy",
    "destroyed",
)


def computed_property(_fn=None, *, setter: Optional[Callable] = None):
    """
    Marks a method of a ViewModel subclass as computed property.
    The method is called with the view model as only argument.
    """

    def decorator_computed(fn: T) -> T:
        fn.setter = setter
        fn.decorator = "computed"
        return fn

    if _fn is None:
        return decorator_computed
    return decorator_computed(_fn)


def _is_reserved(key) -> bool:
    return isinstance(key, str) and key.startswith("_")


class ViewModel:
    """
    Usage:

        vm = ViewModel(
            data={"first": "Jane", "last": "Doe"},
            computed={"full": lambda vm: f"{vm.first} {vm.last}"},
            watch={"full": lambda new, old: print(new)},
        )
    """

    def __init__(
        self,
        data=None,
        computed: Optional[dict] = None,
        watch: Optional[dict] = None,
        hooks: Optional[dict] = None,
        runtime: Optional[Runtime] = None,
    ):
        set_ = super().__setattr__
        set_("_runtime", get_runtime(runtime))
        set_("_watchers", [])
        set_("_watcher", None)
        set_("_computed_watchers", {})
        set_("_computed_setters", {})
        set_("_hooks", _normalize_hooks(hooks))
        set_("_inactive", None)
        set_("_is_mounted", False)
        set_("_is_destroyed", False)
        set_("_is_being_destroyed", False)

        self._init_data(data)

        computed_defs = dict(computed or {})
        cls = type(self)
        for name in dir(cls):
            fn = getattr(cls, name, None)
            if getattr(fn, "decorator", None) == "computed":
                computed_defs[name] = {"get": fn, "set": fn.setter}
        for name, definition in computed_defs.items():
            self._init_computed(name, definition)

        for expression, handler in (watch or {}).items():
            if isinstance(handler, list):
                for h in handler:
                    self._create_watcher(expression, h)
            else:
                self._create_watcher(expression, handler)

    def _init_data(self, data) -> None:
        if callable(data):
            stack = self._runtime.stack
            # disable dep collection when invoking data getters
            stack.push(None)
            try:
                data = data(self)
            except Exception as e:
                handle_error(e, self, "data()", self._runtime)
                data = {}
            finally:
                stack.pop()
        elif data is None:
            data = {}
        if not isinstance(data, dict):
            warn("data functions should return a dict")
            data = {}

        cls = type(self)
        for key in data:
            if _is_reserved(key):
                warn(
                    f'The data property "{key}" is reserved: keys starting with "_"'
                    " are not exposed as attributes."
                )
            elif hasattr(cls, key):
                warn(f'The data property "{key}" clashes with a ViewModel attribute.')
        ob = observer.observe(data, as_root_data=True, runtime=self._runtime)
        super().__setattr__("_data", ob.proxy)

    def _init_computed(self, name: str, definition) -> None:
        if callable(definition):
            getter, setter = definition, None
        else:
            getter, setter = definition.get("get"), definition.get("set")
        if getter is None:
            warn(f'Getter is missing for computed property "{name}".')
            return
        if name in self._data.__target__:
            warn(f'The computed property "{name}" is already defined in data.')
            return
        self._computed_watchers[name] = Watcher(self, getter, lazy=True)
        if setter is not None:
            self._computed_setters[name] = setter

    def _create_watcher(self, expression, handler, **options):
        if isinstance(handler, dict):
            options = {k: v for k, v in handler.items() if k != "handler"}
            handler = handler["handler"]
        if isinstance(handler, str):
            handler = getattr(self, handler)
        return self.watch(expression, handler, **options)

    def __getattribute__(self, name):
        super_getattribute = super().__getattribute__
        if name.startswith("_"):
            return super_getattribute(name)
        watcher = super_getattribute("_computed_watchers").get(name)
        if watcher is not None:
            # evaluate right away to make the computed
            # property behave like an attribute
            if watcher.dirty:
                watcher.evaluate()
            if super_getattribute("_runtime").stack.target is not None:
                watcher.depend()
            return watcher.value
        return super_getattribute(name)

    def __getattr__(self, name):
        # only called when regular attribute lookup failed
        if not _is_reserved(name):
            data = self._data
            if name in data.__target__:
                return data[name]
        raise AttributeError(
            f"'{type(self).__name__}' object has no attribute '{name}'"
        )

    def __setattr__(self, name, value):
        if not _is_reserved(name):
            if name in self._computed_watchers:
                setter = self._computed_setters.get(name)
                if setter is None:
                    warn(
                        f'Computed property "{name}" was assigned to'
                        " but it has no setter."
                    )
                else:
                    setter(self, value)
                return
            if name in self._data.__target__:
                self._data[name] = value
                return
        super().__setattr__(name, value)

    @property
    def data(self):
        return self._data

    def watch(
        self,
        expression,
        callback,
        deep: bool = False,
        immediate: bool = False,
        sync: bool = False,
    ) -> Callable[[], None]:
        """
        Watches an expression (dot-delimited path or function) and calls
        callback with the new and old value when it changes.
        Returns a function that stops the watcher.
        """
        if isinstance(callback, dict):
            return self._create_watcher(expression, callback)
        watcher = Watcher(self, expression, callback, sync=sync, deep=deep, user=True)
        if immediate:
            stack = self._runtime.stack
            stack.push(None)
            try:
                invoke_with_error_handling(
                    callback,
                    (watcher.value,),
                    self,
                    f'callback for immediate watcher "{watcher.expression}"',
                    self._runtime,
                )
            finally:
                stack.pop()
        return watcher.teardown

    def set(self, container, key, value):
        return observer.set(container, key, value, runtime=self._runtime)

    def delete(self, container, key):
        return observer.delete(container, key, runtime=self._runtime)

    def call_hook(self, hook: str) -> None:
        handlers = self._hooks.get(hook)
        if not handlers:
            return
        stack = self._runtime.stack
        # disable dep collection when invoking lifecycle hooks
        stack.push(None)
        try:
            for handler in handlers:
                invoke_with_error_handling(
                    handler, (self,), self, f"{hook} hook", self._runtime
                )
        finally:
            stack.pop()

    def mount(self, render: Callable[[Any], Any]) -> Watcher:
        """
        Creates the render watcher, which calls render with
        the view model each time its dependencies change.
        """
        self.call_hook("before_mount")

        def before():
            if self._is_mounted and not self._is_destroyed:
                self.call_hook("before_update")

        # the render watcher is not a user watcher, errors
        # in render are not swallowed
        watcher = Watcher(self, render, before=before)
        super().__setattr__("_watcher", watcher)
        super().__setattr__("_is_mounted", True)
        self.call_hook("mounted")
        return watcher

    def activate(self) -> None:
        if self._inactive or self._inactive is None:
            super().__setattr__("_inactive", False)
            self.call_hook("activated")

    def deactivate(self) -> None:
        if not self._inactive:
            super().__setattr__("_inactive", True)
            self.call_hook("deactivated")

    def destroy(self) -> None:
        if self._is_being_destroyed:
            return
        self.call_hook("before_destroy")
        super().__setattr__("_is_being_destroyed", True)
        for watcher in self._watchers:
            watcher.teardown()
        self._data.__ob__.vm_count -= 1
        super().__setattr__("_is_destroyed", True)
        self.call_hook("destroyed")


def _normalize_hooks(hooks: Optional[dict]) -> dict[str, list[Callable]]:
    result = {}
    for name, handlers in (hooks or {}).items():
        if name not in HOOKS:
            warn(f'Unknown hook "{name}", expected one of {", ".join(HOOKS)}.')
            continue
        result[name] = list(handlers) if isinstance(handlers, list) else [handlers]
    return result
