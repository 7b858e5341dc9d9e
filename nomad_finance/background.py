"""
Background event loop for the Streamlit session.

Streamlit reruns the script on its own thread for every interaction. Store
mutations apply their local change immediately and then wait on the remote
service; only the local part should hold up a rerun. One BackgroundLoop per
session runs the remote remainder on a daemon thread.
"""

import asyncio
import threading
from typing import Any, Coroutine, Optional

import structlog


logger = structlog.get_logger("nomad_finance.background")


class BackgroundLoop:
    """An asyncio loop running forever on a daemon thread."""

    def __init__(self, name: str = "nomad-finance-sync"):
        self._loop = asyncio.new_event_loop()
        self._tasks: set[asyncio.Task] = set()
        self._thread = threading.Thread(target=self._run_forever, daemon=True, name=name)
        self._thread.start()

    def _run_forever(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def pending_tasks(self) -> int:
        """Number of submitted coroutines still waiting on remote calls."""
        return len(self._tasks)

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run `coro` on the loop and block until it finishes."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def start(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> None:
        """
        Schedule `coro` and return once it reaches its first suspension.

        Everything the coroutine does before its first real await (the
        optimistic local change) has happened when this returns.
        """
        self.run(self._begin(coro), timeout)

    async def _begin(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        # One loop turn lets the task run up to its first await
        await asyncio.sleep(0)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("background_task_failed", error=str(error), error_type=type(error).__name__)

    def stop(self, timeout: float = 5.0) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._loop.close()
