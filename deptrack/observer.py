"""
observe converts plain datastructures (dict, list) to
reactive versions of those datastructures.

Observation happens in place: every nested dict or list that is
stored in an observed container is replaced by the proxy of its
own Observer, which makes the observer of a stored value
reachable from the value itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Hashable, Optional

from .dep import Dep
from .errors import warn
from .proxy import Proxy, proxy_type_for, unwrap
from .runtime import get_runtime

if TYPE_CHECKING:
    from .runtime import Runtime

_MISSING = object()

PRIMITIVE_TYPES = (type(None), bool, int, float, complex, str, bytes)


def is_primitive(value: Any) -> bool:
    return isinstance(value, PRIMITIVE_TYPES)


def has_changed(value: Any, old: Any) -> bool:
    """
    Primitives are compared by type and value (NaN equals NaN),
    everything else by identity.
    """
    if value is old:
        return False
    if is_primitive(value) and type(value) is type(old):
        # NaN is the only value that is not equal to itself
        if value != value and old != old:
            return False
        return value != old
    return True


class Slot:
    """Reactive property of an observed dict"""

    __slots__ = ("dep", "shallow")

    def __init__(self, dep: Dep, shallow: bool = False):
        self.dep = dep
        self.shallow = shallow


class Observer:
    """
    Attached to each observed dict or list. Owns the dep that is
    notified when keys are added to/removed from the value or when
    a list is mutated, and one slot per key for dicts.
    """

    __slots__ = (
        "__weakref__",
        "dep",
        "proxy",
        "runtime",
        "slots",
        "value",
        "vm_count",
    )

    def __init__(self, value: dict | list, runtime: "Runtime", walk: bool = True):
        self.value = value
        self.runtime = runtime
        self.dep = Dep(runtime)
        # number of view models that have this value as root data
        self.vm_count = 0
        self.slots: dict[Hashable, Slot] = {}
        # register before walking, so that cycles find this observer
        runtime.observers[id(value)] = self
        self.proxy = proxy_type_for(value)(self)
        if not walk:
            return
        if isinstance(value, list):
            self.observe_array(value)
        else:
            self.walk(value)

    def walk(self, obj: dict) -> None:
        for key in list(obj):
            self.define(key)

    def observe_array(self, items: list) -> None:
        for i, item in enumerate(items):
            items[i] = self.reactive_value(item)

    def reactive_value(self, value: Any) -> Any:
        """Returns the proxy for value if it can be observed"""
        ob = observe(value, runtime=self.runtime)
        return value if ob is None else ob.proxy

    def define(self, key: Hashable, value: Any = _MISSING, shallow: bool = False):
        if value is _MISSING:
            value = self.value[key]
        self.value[key] = value if shallow else self.reactive_value(value)
        self.slots[key] = Slot(Dep(self.runtime), shallow)

    def depend(self) -> None:
        """Tracks the shape of the value"""
        self.dep.depend()

    def depend_key(self, key: Hashable) -> None:
        slot = self.slots.get(key)
        if slot is None:
            # the key might be added later, which changes the shape
            self.dep.depend()
            return
        slot.dep.depend()
        if slot.shallow:
            return
        value = self.value.get(key)
        if isinstance(value, Proxy):
            # make adding/removing keys to the nested value
            # visible to whoever reads it through this key
            child = value.__ob__
            child.dep.depend()
            if isinstance(child.value, list):
                depend_array(child.value)

    def depend_all(self) -> None:
        """Tracks the shape and every key of the value"""
        self.dep.depend()
        if isinstance(self.value, dict):
            for key in self.value:
                self.depend_key(key)
        else:
            depend_array(self.value)

    def assign(self, key: Hashable, value: Any) -> None:
        """Writes to a reactive key, notifying only on actual change"""
        slot = self.slots.get(key)
        if slot is None:
            set(self.proxy, key, value)
            return
        if not slot.shallow:
            value = self.reactive_value(value)
        if not has_changed(value, self.value.get(key, _MISSING)):
            return
        self.value[key] = value
        slot.dep.notify()

    def remove(self, key: Hashable) -> None:
        del self.value[key]
        slot = self.slots.pop(key, None)
        if slot is not None:
            slot.dep.notify()
        self.dep.notify()


def depend_array(items: list) -> None:
    """
    Collect dependencies on list elements when the list is touched,
    since element access by index is not tracked per index.
    """
    for item in items:
        if isinstance(item, Proxy):
            ob = item.__ob__
            ob.dep.depend()
            if isinstance(ob.value, list):
                depend_array(ob.value)


def observe(
    value: Any, as_root_data: bool = False, runtime: Optional["Runtime"] = None
) -> Optional[Observer]:
    """
    Attempt to create an observer for a value, returns the new
    observer if successfully observed, or the existing observer
    if the value already has one.
    """
    if isinstance(value, Proxy):
        ob = value.__ob__
    elif proxy_type_for(value) is None:
        return None
    else:
        runtime = get_runtime(runtime)
        ob = runtime.observers.get(id(value))
        if ob is not None and ob.value is not value:
            ob = None
        if ob is None and runtime.observing:
            ob = Observer(value, runtime)
    if as_root_data and ob is not None:
        ob.vm_count += 1
    return ob


def reactive(value, runtime: Optional["Runtime"] = None):
    """
    Returns the reactive proxy for the given value. Values that
    can't be observed are returned as is.
    """
    ob = observe(value, runtime=runtime)
    return value if ob is None else ob.proxy


def _observer_of(container, runtime: Optional["Runtime"]) -> Optional[Observer]:
    if isinstance(container, Proxy):
        return container.__ob__
    ob = get_runtime(runtime).observers.get(id(container))
    if ob is not None and ob.value is container:
        return ob
    return None


def define_reactive(
    container,
    key: Hashable,
    value: Any = _MISSING,
    shallow: bool = False,
    runtime: Optional["Runtime"] = None,
):
    """
    Define a reactive key on a dict. The dict does not need to be
    observed already: only the given key is made reactive then.
    Returns the proxy of the dict, which keeps its observer alive.
    """
    ob = _observer_of(container, runtime)
    if ob is None:
        target = unwrap(container)
        if not isinstance(target, dict):
            raise TypeError(
                f"Can only define reactive keys on a dict, not {type(target).__name__}"
            )
        ob = Observer(target, get_runtime(runtime), walk=False)
    ob.define(key, value, shallow=shallow)
    return ob.proxy


def _is_valid_index(container, key) -> bool:
    return (
        isinstance(unwrap(container), list)
        and isinstance(key, int)
        and not isinstance(key, bool)
        and key >= 0
    )


def set(container, key: Hashable, value: Any, runtime: Optional["Runtime"] = None):
    """
    Set a key on a dict or an index on a list. Adds the new key
    and triggers change notification if the key doesn't already
    exist.
    """
    if container is None or is_primitive(container):
        warn(
            "Cannot set reactive property on None or primitive value:"
            f" {container!r}"
        )
        return value

    ob = _observer_of(container, runtime)
    target = unwrap(container)

    if _is_valid_index(container, key):
        if ob is None:
            target.extend([None] * (key + 1 - len(target)))
            target[key] = value
            return value
        if key >= len(target):
            target.extend([None] * (key - len(target)))
        ob.proxy.splice(key, 1, value)
        return value

    if not isinstance(target, dict):
        warn(
            f"Cannot set key {key!r} on {type(target).__name__}: only dicts"
            " and non-negative list indices are supported."
        )
        return value

    if key in target:
        if ob is not None and key in ob.slots:
            ob.assign(key, value)
        else:
            target[key] = value
        return value

    if ob is not None and ob.vm_count:
        warn(
            "Avoid adding reactive properties to the root data of a view model"
            f" at runtime (key {key!r}) - declare it upfront in the data option."
        )
        target[key] = value
        return value

    if ob is None:
        target[key] = value
        return value

    ob.define(key, value)
    ob.dep.notify()
    return value


def delete(container, key: Hashable, runtime: Optional["Runtime"] = None) -> None:
    """
    Delete a key and trigger change notification if necessary.
    """
    if container is None or is_primitive(container):
        warn(
            "Cannot delete reactive property on None or primitive value:"
            f" {container!r}"
        )
        return

    ob = _observer_of(container, runtime)
    target = unwrap(container)

    if _is_valid_index(container, key):
        if key >= len(target):
            return
        if ob is None:
            del target[key]
        else:
            ob.proxy.splice(key, 1)
        return

    if ob is not None and ob.vm_count:
        warn(
            "Avoid deleting properties on the root data of a view model"
            f" (key {key!r}) - just set it to None."
        )
        return

    if not isinstance(target, dict):
        warn(
            f"Cannot delete key {key!r} on {type(target).__name__}: only dicts"
            " and non-negative list indices are supported."
        )
        return

    if key not in target:
        return

    if ob is None:
        del target[key]
        return

    ob.remove(key)
