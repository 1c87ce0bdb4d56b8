import gc

import pytest

from deptrack import Runtime, default_runtime, scheduler


def noop():
    pass


@pytest.fixture
def noop_request_flush():
    old_callback = scheduler.request_flush
    scheduler.register_request_flush(noop)
    try:
        yield
    finally:
        scheduler.register_request_flush(old_callback)


@pytest.fixture
def sync_mode():
    default_runtime.async_mode = False
    try:
        yield
    finally:
        default_runtime.async_mode = True


@pytest.fixture
def runtime():
    """Runtime that is independent of the default one"""
    runtime = Runtime()
    runtime.scheduler.register_request_flush(noop)
    return runtime


@pytest.fixture(autouse=True)
def clear():
    try:
        yield
    finally:
        default_runtime.reset()
        default_runtime.observing = True
        default_runtime.error_handler = None
        scheduler.detect_cycles = True
        # drop observers of values that are no longer referenced
        gc.collect()
