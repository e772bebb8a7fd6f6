"""Registry of outstanding verification calls."""

import asyncio
from collections.abc import Callable, Coroutine
from functools import partial
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """Maps a request fingerprint to the one task currently serving it.

    ``get_or_start`` looks up and registers without awaiting in between,
    so concurrent callers on the same event loop cannot both start a call
    for one fingerprint. An entry is dropped as soon as its task settles;
    finished results and errors are never handed to later callers.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def get_or_start(
        self,
        fingerprint: str,
        factory: Callable[[], Coroutine[Any, Any, T]],
    ) -> tuple[asyncio.Task[T], bool]:
        """Return the outstanding task for ``fingerprint``, starting one if needed.

        Returns:
            The task and whether this call started it.
        """
        task = self._tasks.get(fingerprint)
        # A finished task may still be registered until its done callback runs
        if task is not None and not task.done():
            return task, False

        task = asyncio.create_task(factory())
        self._tasks[fingerprint] = task
        task.add_done_callback(partial(self._settle, fingerprint))
        return task, True

    async def run(
        self,
        fingerprint: str,
        factory: Callable[[], Coroutine[Any, Any, T]],
        on_join: Callable[[], None] | None = None,
    ) -> T:
        """Await the shared call for ``fingerprint``.

        Args:
            fingerprint: Identity of the request.
            factory: Builds the coroutine when no call is outstanding.
            on_join: Called when an outstanding call was joined instead of
                a new one started.

        A caller that is cancelled stops waiting without cancelling the call
        for the others.
        """
        task, started = self.get_or_start(fingerprint, factory)
        if not started and on_join is not None:
            on_join()
        return await asyncio.shield(task)

    def _settle(self, fingerprint: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(fingerprint) is task:
            del self._tasks[fingerprint]
        if not task.cancelled():
            # Retrieved here so a call nobody waits for anymore is not reported
            task.exception()
