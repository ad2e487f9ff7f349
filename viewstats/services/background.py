"""
Background Task Runner

Fire-and-forget execution of coroutines off the request path. Each task runs
inside an error boundary, so a failure is logged and never reaches the code
that submitted it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable

from viewstats.utils.metrics import BACKGROUND_TASKS_PENDING

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]


class BackgroundTaskRunner:
    """
    Runs submitted work as detached asyncio tasks.

    Submissions are keyed. While a key is in flight, further submissions for
    it are coalesced into a single follow-up run that starts once the current
    one finishes, so the last trigger is never lost. A submission made with
    `follow_up=False` only asks for the key to be running and is dropped
    when it already is.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._in_flight: dict[Hashable, asyncio.Task] = {}
        self._rerun: dict[Hashable, tuple[TaskFactory, str]] = {}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def is_in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    def submit(
        self,
        key: Hashable,
        factory: TaskFactory,
        description: str | None = None,
        follow_up: bool = True,
    ) -> bool:
        """
        Schedule `factory()` on the running loop.

        Returns True if a new task was started, False if the submission was
        coalesced into an in-flight task for the same key.
        """
        description = description or str(key)
        if key in self._in_flight:
            if not follow_up:
                logger.debug(f"Background task {description} already running")
                return False
            self._rerun[key] = (factory, description)
            logger.debug(f"Coalesced background task {description}")
            return False

        self._start(key, factory, description)
        return True

    def _start(self, key: Hashable, factory: TaskFactory, description: str) -> None:
        task = asyncio.get_running_loop().create_task(self._run(key, factory, description))
        self._tasks.add(task)
        self._in_flight[key] = task
        BACKGROUND_TASKS_PENDING.inc()
        task.add_done_callback(lambda t: self._finished(key, t))

    async def _run(self, key: Hashable, factory: TaskFactory, description: str) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Background task {description} failed", extra={"task": description})

    def _finished(self, key: Hashable, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        BACKGROUND_TASKS_PENDING.dec()
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

        follow_up = self._rerun.pop(key, None)
        if follow_up is not None and not task.cancelled():
            factory, description = follow_up
            try:
                self._start(key, factory, description)
            except RuntimeError:
                # Event loop already closed
                logger.warning(f"Dropped background task {description}: event loop is not running")

    async def drain(self) -> None:
        """Wait until every submitted task, including coalesced follow-ups, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        self._rerun.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
