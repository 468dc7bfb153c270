"""
Single-flight coordination for async operations.

The first caller starts the operation; callers arriving while it is in
flight await the same task and receive the same result (or exception).
The registration is cleared when the operation finishes, successfully or
not, so a later call starts a fresh execution.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Deduplicates concurrent executions of one async operation."""

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` or attach to the execution already in flight.

        Waiters are shielded: cancelling one caller does not cancel the
        shared task for the others.
        """
        # No await between the check and the assignment, so registration
        # is atomic with respect to other tasks on the loop.
        task = self._task
        if task is None:
            task = asyncio.ensure_future(self._execute(operation))
            self._task = task
        return await asyncio.shield(task)

    def forget(self) -> None:
        """
        Drop the current registration without cancelling it.

        Callers already attached still receive the old result; the next
        call to run() starts a new execution.
        """
        self._task = None

    async def _execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        finally:
            if self._task is asyncio.current_task():
                self._task = None
