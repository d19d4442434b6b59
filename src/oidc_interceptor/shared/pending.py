"""Single-flight helpers built on anyio primitives."""

from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import anyio

T = TypeVar("T")


class PendingAcquisition(Generic[T]):
    """An in-flight acquisition that any number of tasks can wait on.

    The task that created it settles it exactly once with ``resolve`` or
    ``fail``; every waiter then observes the same outcome. Waiters only see
    whether a value was produced: the failure itself stays with the task that
    ran the acquisition.
    """

    def __init__(self) -> None:
        self._event = anyio.Event()
        self._value: T | None = None

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def resolve(self, value: T) -> None:
        if self._event.is_set():
            raise RuntimeError("Acquisition already settled")
        self._value = value
        self._event.set()

    def fail(self) -> None:
        if self._event.is_set():
            raise RuntimeError("Acquisition already settled")
        self._event.set()

    async def wait(self) -> T | None:
        """Wait until settled; return the value, or None if the acquisition failed."""
        await self._event.wait()
        return self._value


class Deferred(Generic[T]):
    """Result of an async factory, computed once on first use.

    Concurrent callers queue behind the same attempt. A failed attempt is not
    remembered: its caller gets the exception and the next caller runs the
    factory again.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._lock = anyio.Lock()
        self._value: T | None = None
        self._ready = False

    async def get(self) -> T:
        async with self._lock:
            if not self._ready:
                self._value = await self._factory()
                self._ready = True
        return self._value  # type: ignore[return-value]
