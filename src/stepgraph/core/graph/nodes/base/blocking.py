"""Blocking adapters for node actions.

The traversal loop is synchronous. Coroutine results are driven to completion
on a short-lived worker thread with its own event loop, so an action may be
``async def`` even when the caller of ``CompiledGraph.run`` is itself inside a
running event loop.
"""

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from functools import wraps
from typing import Any, Awaitable, Callable, Optional

from stepgraph.core.graph.errors import NodeExecutionError


def await_blocking(awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
    """Run ``awaitable`` on a worker event loop and block until it finishes.

    Exceptions raised by the awaitable itself, including its own
    ``TimeoutError``, propagate unchanged.

    Raises:
        NodeExecutionError: If ``timeout`` elapses first
    """
    async def runner():
        if timeout is None:
            return await awaitable
        task = asyncio.ensure_future(awaitable)
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task not in done:
            task.cancel()
            raise NodeExecutionError(f"Async action timed out after {timeout}s")
        return task.result()

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stepgraph-async")
    try:
        return pool.submit(asyncio.run, runner()).result()
    finally:
        pool.shutdown(wait=False)


def run_on_worker(fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
    """Call ``fn`` on a worker thread and block until it returns.

    An awaitable result is awaited on a worker event loop. The worker is not
    interrupted when the timeout fires.

    Raises:
        NodeExecutionError: If ``timeout`` elapses first
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stepgraph-call")
    future = pool.submit(fn, *args, **kwargs)
    try:
        result = future.result(timeout=timeout)
    except FutureTimeoutError:
        if future.done():
            raise
        raise NodeExecutionError(f"Action timed out after {timeout}s") from None
    finally:
        pool.shutdown(wait=False)

    if inspect.isawaitable(result):
        result = await_blocking(result, timeout)
    return result


def call_blocking(fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
    """Call ``fn`` and return its result, awaiting it when it is awaitable.

    Without a timeout a synchronous ``fn`` runs on the calling thread. With a
    timeout it runs on a worker and the wait is bounded.

    Raises:
        NodeExecutionError: If ``timeout`` elapses first
    """
    if timeout is None:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await_blocking(result)
        return result

    if inspect.iscoroutinefunction(fn):
        return await_blocking(fn(*args, **kwargs), timeout)
    return run_on_worker(fn, *args, timeout=timeout, **kwargs)


def blocking(action: Callable[..., Any], timeout: Optional[float] = None) -> Callable[[Any], Any]:
    """Wrap a sync or async action into a synchronous one with an optional timeout.

    Example:
        ```python
        async def fetch(state):
            docs = await retriever.retrieve(state.get("query", str))
            return {"documents": docs}

        graph.add_node("fetch", blocking(fetch, timeout=10))
        ```
    """
    @wraps(action)
    def wrapper(state: Any) -> Any:
        return call_blocking(action, state, timeout=timeout)
    return wrapper
