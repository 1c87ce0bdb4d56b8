from collections.abc import MutableMapping

from .observer import delete, set
from .proxy import TYPE_LOOKUP, Proxy
from .traps import construct_methods_traps_dict, trap_map

dict_traps = {
    "READERS": {
        "__contains__",
        "__iter__",
        "__len__",
        "__reversed__",
        "keys",
    },
    "CONTENT_READERS": {
        "copy",
        "__eq__",
        "__format__",
        "__ne__",
        "__or__",
        "__repr__",
        "__ror__",
        "__sizeof__",
        "__str__",
        "items",
        "values",
    },
    "KEYREADERS": {
        "get",
        "__getitem__",
    },
}


class DictProxyBase(Proxy[dict]):
    """
    Writes to existing keys notify only when the value actually
    changed. Adding or removing keys goes through `set` and `delete`.
    """

    def __setitem__(self, key, value):
        self.__ob__.assign(key, value)

    def __delitem__(self, key):
        if key not in self.__target__:
            raise KeyError(key)
        delete(self, key)

    def setdefault(self, key, default=None):
        if key not in self.__target__:
            set(self, key, default)
        return self[key]

    def update(self, *args, **kwargs):
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def __ior__(self, other):
        self.update(other)
        return self

    def pop(self, key, *default):
        target = self.__target__
        if key not in target:
            if default:
                return default[0]
            raise KeyError(key)
        value = target[key]
        delete(self, key)
        return value

    def popitem(self):
        target = self.__target__
        if not target:
            raise KeyError("popitem(): dictionary is empty")
        key = next(reversed(target))
        value = target[key]
        delete(self, key)
        return key, value

    def clear(self):
        for key in list(self.__target__):
            delete(self, key)


ReactiveDict = type(
    "ReactiveDict",
    (DictProxyBase,),
    construct_methods_traps_dict(dict, dict_traps, trap_map),
)

MutableMapping.register(DictProxyBase)

TYPE_LOOKUP[dict] = ReactiveDict
