from functools import wraps

from .proxy import unwrap


def read_trap(method, obj_cls):
    """Reads that only depend on the shape of the target"""
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        ob = self.__ob__
        if ob.runtime.stack.target is not None:
            ob.depend()
        return fn(self.__target__, *args, **kwargs)

    return trap


def read_all_trap(method, obj_cls):
    """Reads that depend on the shape and all the contents of the target"""
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        ob = self.__ob__
        if ob.runtime.stack.target is not None:
            ob.depend_all()
        # unwrap so that comparing/combining with other proxies works
        return fn(self.__target__, *map(unwrap, args), **kwargs)

    return trap


def read_key_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        ob = self.__ob__
        if ob.runtime.stack.target is not None:
            ob.depend_key(args[0])
        return fn(self.__target__, *args, **kwargs)

    return trap


def reactive_args(method, ob, args):
    """Makes the values that are inserted by a list method reactive"""
    if method == "append":
        return (ob.reactive_value(args[0]),)
    if method == "insert":
        return (args[0], ob.reactive_value(args[1]))
    if method in ("extend", "__iadd__"):
        return ([ob.reactive_value(value) for value in args[0]],)
    if method == "__setitem__":
        index, value = args
        if isinstance(index, slice):
            return (index, [ob.reactive_value(v) for v in value])
        return (index, ob.reactive_value(value))
    return args


def mutate_trap(method, obj_cls):
    fn = getattr(obj_cls, method)

    @wraps(fn)
    def trap(self, *args, **kwargs):
        ob = self.__ob__
        target = self.__target__
        args = reactive_args(method, ob, args)
        retval = fn(target, *args, **kwargs)
        ob.dep.notify()
        # in-place operators return the target
        if retval is target:
            return self
        return retval

    return trap


trap_map = {
    "READERS": read_trap,
    "CONTENT_READERS": read_all_trap,
    "KEYREADERS": read_key_trap,
    "MUTATORS": mutate_trap,
}


def construct_methods_traps_dict(obj_cls, traps, trap_map):
    return {
        method: trap_map[trap_type](method, obj_cls)
        for trap_type, methods in traps.items()
        for method in methods
    }
