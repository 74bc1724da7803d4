"""
Async helpers.
"""
import asyncio
from typing import Callable


async def wait_for_condition(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 0.1,
) -> None:
    """
    Wait until a predicate becomes true.

    Args:
        predicate: Condition polled every ``interval`` seconds.
        timeout: Maximum time to wait in seconds.
        interval: Polling interval in seconds.

    Raises:
        asyncio.TimeoutError: If the predicate is still false after ``timeout``.
    """
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(interval)

    await asyncio.wait_for(_poll(), timeout=timeout)
