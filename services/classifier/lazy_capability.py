"""Lazily initialized handle to an external capability."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


def _retrieve_exception(task: asyncio.Future) -> None:
    # Marks a failure as seen when every caller stopped waiting; _load logs it.
    if not task.cancelled():
        task.exception()


class LazyCapability(Generic[T]):
    """Load a capability on first use, exactly once.

    Concurrent first callers all await the same in-flight load instead of
    starting their own. A failed load is not cached: the next caller starts
    a fresh attempt. The load runs shielded, so a caller giving up (timeout,
    cancellation) does not abort it for the others.

    Args:
        loader: Zero-argument coroutine function returning the capability.
        name: Label used in log messages.
    """

    def __init__(self, loader: Callable[[], Awaitable[T]], name: str = "capability") -> None:
        self._loader = loader
        self.name = name
        self._value: Optional[T] = None
        self._loading: Optional[asyncio.Task] = None

    @property
    def loaded(self) -> bool:
        return self._value is not None

    @property
    def loading(self) -> bool:
        return self._loading is not None

    async def get(self) -> T:
        """Return the capability, loading it if needed."""
        if self._value is not None:
            return self._value
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())
            self._loading.add_done_callback(_retrieve_exception)
        return await asyncio.shield(self._loading)

    async def _load(self) -> T:
        logging.info("Loading %s", self.name)
        start = time.time()
        try:
            value = await self._loader()
        except Exception as exc:
            logging.error("Failed to load %s: %s", self.name, exc)
            raise
        finally:
            self._loading = None
        self._value = value
        logging.info("%s loaded in %.3fs", self.name, time.time() - start)
        return value

    async def aclose(self) -> None:
        """Release the loaded capability if it exposes a close/aclose method."""
        value, self._value = self._value, None
        if value is None:
            return
        aclose = getattr(value, "aclose", None) or getattr(value, "close", None)
        if aclose is None:
            return
        result = aclose()
        if inspect.isawaitable(result):
            await result
