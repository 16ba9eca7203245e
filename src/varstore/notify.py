"""Deferred delivery of store change notifications.

Handlers subscribed to a store key never run inside the set_value call
that triggered them. Each (handler, key, value) work item is scheduled:

- on the running asyncio loop, when there is one (coroutine handlers
  become tasks, plain handlers go through loop.call_soon);
- otherwise on a small thread pool. With a single worker, items run in
  the order they were fired.

Handler failures are logged and never reach the code that fired them.
"""

import asyncio
import inspect
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable

from varstore.config import get_settings

logger = logging.getLogger(__name__)

# Handler signature: (key, value) -> None, or an async function of the same shape
Handler = Callable[[str, Any], Any]


class Notifier:
    """Schedules subscriber callbacks away from the caller's stack.

    Usage:
        notifier = Notifier()
        notifier.schedule(print, "count", 3)
        notifier.drain()
    """

    def __init__(self, max_workers: int | None = None):
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._tasks: set[asyncio.Task] = set()
        self._lock = threading.Lock()

    def schedule(self, handler: Handler, key: str, value: Any) -> None:
        """Queue one handler invocation for key with value."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            if inspect.iscoroutinefunction(handler):
                task = loop.create_task(self._run_async(handler, key, value))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                loop.call_soon(self._run, handler, key, value)
            return

        future = self._get_executor().submit(self._run_in_thread, handler, key, value)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for thread-delivered notifications scheduled so far.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            True if everything scheduled before the call has run
        """
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        """Stop the worker threads."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                workers = self._max_workers or get_settings().notify_workers
                self._executor = ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix="varstore-notify"
                )
            return self._executor

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(handler: Handler, key: str, value: Any) -> None:
        try:
            handler(key, value)
        except Exception as e:
            logger.error("Notification handler for '%s' failed: %s", key, e)

    @staticmethod
    def _run_in_thread(handler: Handler, key: str, value: Any) -> None:
        try:
            result = handler(key, value)
            if inspect.iscoroutine(result):
                asyncio.run(result)
        except Exception as e:
            logger.error("Notification handler for '%s' failed: %s", key, e)

    @staticmethod
    async def _run_async(handler: Handler, key: str, value: Any) -> None:
        try:
            await handler(key, value)
        except Exception as e:
            logger.error("Notification handler for '%s' failed: %s", key, e)


_default_notifier: Notifier | None = None
_default_lock = threading.Lock()


def get_notifier() -> Notifier:
    """Return the process-wide notifier shared by stores by default."""
    global _default_notifier
    with _default_lock:
        if _default_notifier is None:
            _default_notifier = Notifier()
        return _default_notifier
