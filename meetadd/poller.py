import asyncio
import time
from typing import Any, Callable, Optional

from .dom import maybe_await

async def wait_for_condition(
    predicate: Callable[[], Any],
    timeout_ms: int,
    interval_ms: int = 100,
) -> Optional[Any]:
    """
    Evaluate `predicate` now and then every `interval_ms` until it returns a
    truthy value (returned as-is) or `timeout_ms` has elapsed (returns None).

    The predicate may be sync or async. An exception raised by one evaluation
    counts as "not yet", so a node that is briefly detached does not abort the
    wait. Never raises on timeout; callers decide whether None is fatal.
    """
    timeout_s = max(0, timeout_ms) / 1000.0
    interval_s = max(0, interval_ms) / 1000.0
    start = time.monotonic()
    while True:
        try:
            result = await maybe_await(predicate())
            if result:
                return result
        except asyncio.CancelledError:
            raise
        except Exception:
            pass
        remaining = timeout_s - (time.monotonic() - start)
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval_s, remaining))

async def sleep_ms(ms: int) -> None:
    await asyncio.sleep(max(0, ms) / 1000.0)
