import time
import asyncio
import functools
import logging
from contextlib import contextmanager

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


def configure_logging(level="INFO"):
    """
    Set the root log level for the service.

    Called once by the API and the Celery worker after settings are loaded.
    Unknown level names fall back to INFO.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.getLogger().setLevel(numeric_level)


def get_logger(name=None):
    """
    Get a logger with the specified name or the calling module's name.
    """
    if name is None:
        import inspect
        frame = inspect.stack()[1]
        module = inspect.getmodule(frame[0])
        name = module.__name__ if module else __name__

    return logging.getLogger(name)


def timing_decorator(func=None, *, level="INFO", log_args=False):
    """
    Decorator that logs the execution time of a function or coroutine

    Args:
        func: The function to decorate
        level: Log level ("DEBUG", "INFO", "WARNING", "ERROR")
        log_args: Whether to log function arguments
    """
    def decorator(fn):
        fn_logger = logging.getLogger(fn.__module__)
        log_method = getattr(fn_logger, level.lower())

        def log_call(args, kwargs):
            if log_args:
                arg_str = ', '.join([str(arg) for arg in args])
                kwarg_str = ', '.join([f"{k}={v}" for k, v in kwargs.items()])
                all_args = ', '.join(filter(None, [arg_str, kwarg_str]))
                log_method(f"Calling {fn.__name__}({all_args})")

        if asyncio.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                log_call(args, kwargs)
                start_time = time.perf_counter()
                try:
                    return await fn(*args, **kwargs)
                finally:
                    log_method(f"{fn.__name__} executed in {time.perf_counter() - start_time:.4f} seconds")
            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            log_call(args, kwargs)
            start_time = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                log_method(f"{fn.__name__} executed in {time.perf_counter() - start_time:.4f} seconds")
        return wrapper

    # Usable with or without arguments
    if func is not None:
        return decorator(func)
    return decorator


@contextmanager
def timer(name, level="INFO", logger_name=None):
    """
    Context manager for timing code blocks

    Example:
        with timer("Parsing upload"):
            grid = processor.read_grid(path)
    """
    timer_logger = logging.getLogger(logger_name or __name__)
    log_method = getattr(timer_logger, level.lower())

    start_time = time.perf_counter()
    try:
        yield
    finally:
        log_method(f"{name} completed in {time.perf_counter() - start_time:.4f} seconds")
