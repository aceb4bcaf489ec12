"""Timeout guard for plugin-supplied callables."""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable


def call_with_timeout(func: Callable[..., Any], timeout: float | None, *args: Any) -> Any:
    """Call ``func(*args)``, giving up after ``timeout`` seconds.

    With no timeout the call runs inline. Otherwise it runs on a dedicated
    worker thread that is abandoned (not killed) once the deadline passes.

    Raises:
        TimeoutError: If the call did not finish in time
    """
    if not timeout:
        return func(*args)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="plugin-call")
    try:
        future = executor.submit(func, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise TimeoutError(f"{getattr(func, '__name__', func)!s} timed out after {timeout}s") from None
    finally:
        executor.shutdown(wait=False)
