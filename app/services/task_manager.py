"""
Registry of background ingestion tasks, keyed by document id.

Usage
-----
    task = task_manager.start(document_id, worker.process_document(...))
    # ... later, e.g. in a test or on shutdown ...
    await task_manager.wait_all()
    await task_manager.shutdown()

The registry holds a strong reference to every running task so the event
loop cannot garbage-collect it mid-flight; references are dropped when the
task finishes.  Failures are logged by the task wrapper and never reach the
code that scheduled the work.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Dict, List

logger = logging.getLogger(__name__)


class TaskManager:
    """Manages fire-and-forget asyncio.Tasks per document."""

    def __init__(self) -> None:
        # Every live task and the key it was started under; one key may
        # have several tasks when a document is re-ingested.
        self._tasks: Dict[asyncio.Task, str] = {}

    def is_running(self, key: str) -> bool:
        return any(k == key and not t.done() for t, k in self._tasks.items())

    def running(self) -> List[str]:
        return list(dict.fromkeys(k for t, k in self._tasks.items() if not t.done()))

    def start(self, key: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Launch *coro* as a background task registered under *key*.

        Returns the task so callers that care (tests, shutdown) can await it.
        """

        async def _wrapper() -> None:
            try:
                await coro
            except asyncio.CancelledError:
                logger.warning("Background task %s cancelled", key)
                raise
            except Exception as exc:
                logger.error("Background task %s failed: %s", key, exc, exc_info=True)

        task = asyncio.create_task(_wrapper(), name=f"ingest-{key}")
        self._tasks[task] = key

        # Cleanup reference when done
        task.add_done_callback(self._cleanup)

        logger.info("Background task started for %s", key)
        return task

    def _cleanup(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)

    async def wait_all(self) -> None:
        """Wait until every registered task, including ones started meanwhile, has finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel pending tasks and wait for them to unwind."""
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d background task(s)", len(tasks))
        self._tasks.clear()
