from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar, cast

if TYPE_CHECKING:
    from .observer import Observer

T = TypeVar("T")


class Proxy(Generic[T]):
    """
    Reactive view on an observed dict or list.

    Every observed value has exactly one proxy, created by its Observer.
    Please use `reactive` or `observe` to get a proxy for a certain
    value instead of directly creating one yourself.
    """

    __hash__ = None
    # the slots have to be very unique since keys and
    # attributes of the target may use common names
    __slots__ = ("__ob__", "__target__", "__weakref__")

    def __init__(self, observer: "Observer"):
        self.__ob__ = observer
        self.__target__ = observer.value


# Lookup dict for mapping a type (dict, list) to the
# proxy type that wraps an observed value of that type
TYPE_LOOKUP = {}


def proxy_type_for(target) -> type[Proxy] | None:
    for target_type, proxy_type in TYPE_LOOKUP.items():
        if isinstance(target, target_type):
            return proxy_type
    return None


def unwrap(value):
    """Returns the target of a proxy, or the value itself"""
    if isinstance(value, Proxy):
        return value.__target__
    return value


def to_raw(target: Proxy[T] | T) -> T:
    """
    Returns a raw object from which any trace of proxy has been replaced
    with its wrapped target value.
    """
    if isinstance(target, Proxy):
        return to_raw(target.__target__)

    if isinstance(target, list):
        return cast(T, [to_raw(t) for t in target])

    if isinstance(target, dict):
        return cast(T, {key: to_raw(value) for key, value in target.items()})

    if isinstance(target, tuple):
        return cast(T, tuple(to_raw(t) for t in target))

    if isinstance(target, set):
        return cast(T, {to_raw(t) for t in target})

    return target
