"""
Error reporting for user supplied code and diagnostics for
misuse that should not fail the caller.
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

if TYPE_CHECKING:
    from .runtime import Runtime

logger = logging.getLogger("deptrack")


class ReactivityWarning(UserWarning):
    """
    Issued for recoverable misuse: mutating a value that can't be made
    reactive, runaway update cycles, invalid watch expressions, etc.
    """

    pass


def warn(message: str, stacklevel: int = 3) -> None:
    warnings.warn(message, ReactivityWarning, stacklevel=stacklevel)


def handle_error(
    err: BaseException, vm: Any, info: str, runtime: "Runtime"
) -> None:
    """
    Reports an error raised by user code. Uses the runtime's error
    handler when one is configured and falls back to logging.
    Never raises.
    """
    handler = runtime.error_handler
    if handler is not None:
        try:
            handler(err, vm, info)
            return
        except Exception as handler_err:
            # if the user intentionally re-raised the original error
            # in the handler, don't log it twice
            if handler_err is not err:
                log_error(handler_err, "error_handler")
    log_error(err, info)


def log_error(err: BaseException, info: str) -> None:
    logger.error(
        "Error in %s: %r", info, err, exc_info=(type(err), err, err.__traceback__)
    )


def invoke_with_error_handling(
    handler: Callable,
    args: Sequence[Any],
    vm: Any,
    info: str,
    runtime: "Runtime",
) -> Optional[Any]:
    try:
        return handler(*args)
    except Exception as e:
        handle_error(e, vm, info, runtime)
        return None
