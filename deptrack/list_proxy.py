from collections.abc import MutableSequence

from .proxy import TYPE_LOOKUP, Proxy
from .traps import construct_methods_traps_dict, trap_map

list_traps = {
    "READERS": {
        "count",
        "index",
        "copy",
        "__getitem__",
        "__contains__",
        "__iter__",
        "__len__",
        "__mul__",
        "__rmul__",
        "__repr__",
        "__reversed__",
        "__str__",
        "__format__",
        "__sizeof__",
    },
    "CONTENT_READERS": {
        "__add__",
        "__eq__",
        "__ge__",
        "__gt__",
        "__le__",
        "__lt__",
        "__ne__",
    },
    # Every mutation notifies the list's own dep, since
    # elements can't be tracked per index
    "MUTATORS": {
        "append",
        "clear",
        "extend",
        "insert",
        "pop",
        "remove",
        "reverse",
        "sort",
        "__setitem__",
        "__delitem__",
        "__iadd__",
        "__imul__",
    },
}


class ListProxyBase(Proxy[list]):
    def splice(self, start, delete_count=None, *items):
        """
        Removes delete_count items at start and inserts the given
        items in their place. Returns the removed items.
        """
        ob = self.__ob__
        target = self.__target__
        length = len(target)
        if start < 0:
            start = max(length + start, 0)
        else:
            start = min(start, length)
        if delete_count is None:
            delete_count = length - start
        else:
            delete_count = min(max(delete_count, 0), length - start)

        end = start + delete_count
        removed = target[start:end]
        target[start:end] = [ob.reactive_value(item) for item in items]
        ob.dep.notify()
        return removed


ReactiveList = type(
    "ReactiveList",
    (ListProxyBase,),
    construct_methods_traps_dict(list, list_traps, trap_map),
)

MutableSequence.register(ListProxyBase)

TYPE_LOOKUP[list] = ReactiveList
