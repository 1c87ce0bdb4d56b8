from importlib.metadata import version

__version__ = version("deptrack")


from . import dict_proxy, list_proxy
from .dep import Dep, TargetStack
from .errors import ReactivityWarning, handle_error, invoke_with_error_handling
from .init import init, loop_factory
from .observer import (
    Observer,
    define_reactive,
    delete,
    has_changed,
    observe,
    reactive,
    set,
)
from .proxy import Proxy, to_raw
from .runtime import (
    Runtime,
    default_runtime,
    get_runtime,
    pop_target,
    push_target,
    toggle_observing,
)
from .scheduler import MAX_UPDATE_COUNT, Scheduler
from .viewmodel import ViewModel, computed_property
from .watcher import Watcher, computed, traverse, watch, watch_effect

scheduler = default_runtime.scheduler
