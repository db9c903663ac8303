import asyncio
import gc

import pytest

from services.classifier.lazy_capability import LazyCapability


async def test_concurrent_callers_share_one_load():
    loads = 0

    async def loader():
        nonlocal loads
        loads += 1
        await asyncio.sleep(0.05)
        return object()

    capability = LazyCapability(loader, name="test")
    results = await asyncio.gather(*(capability.get() for _ in range(5)))

    assert loads == 1
    assert all(r is results[0] for r in results)
    assert capability.loaded
    assert not capability.loading


async def test_failed_load_is_retried_on_next_use():
    attempts = 0

    async def loader():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("weights missing")
        return "model"

    capability = LazyCapability(loader)
    with pytest.raises(RuntimeError):
        await capability.get()
    assert not capability.loaded

    assert await capability.get() == "model"
    assert attempts == 2


async def test_caller_timeout_does_not_abort_shared_load():
    async def loader():
        await asyncio.sleep(0.1)
        return "model"

    capability = LazyCapability(loader)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(capability.get(), timeout=0.01)

    assert await capability.get() == "model"


async def test_aclose_releases_loaded_value():
    class Closable:
        closed = False

        async def aclose(self):
            self.closed = True

    value = Closable()

    async def loader():
        return value

    capability = LazyCapability(loader)
    await capability.get()
    await capability.aclose()

    assert value.closed
    assert not capability.loaded


async def test_failed_load_after_all_callers_gave_up_is_not_reported_as_unretrieved():
    loop = asyncio.get_running_loop()
    reported = []
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: reported.append(context))

    async def loader():
        await asyncio.sleep(0.05)
        raise RuntimeError("weights missing")

    try:
        capability = LazyCapability(loader)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(capability.get(), timeout=0.01)
        await asyncio.sleep(0.1)
        del capability
        gc.collect()
    finally:
        loop.set_exception_handler(previous)

    assert not any("never retrieved" in str(context.get("message")) for context in reported)
