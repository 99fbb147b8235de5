"""
Condition-Poll Scheduler

The one bounded-wait primitive used by every discovery and exchange step.
Evaluates a predicate, sleeps cooperatively between evaluations so message
callbacks keep running on the same loop, and raises ConditionTimeout once
the deadline passes.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Union

from .errors import ConditionTimeout

logger = logging.getLogger(__name__)

Predicate = Callable[[], Union[Any, Awaitable[Any]]]


async def await_condition(
    predicate: Predicate,
    interval: float = 1.0,
    timeout: float = 300.0,
    label: str = "condition",
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> bool:
    """
    Poll until predicate() is truthy.

    Args:
        predicate: Zero-argument callable, sync or async
        interval: Seconds to sleep between evaluations
        timeout: Total seconds before giving up
        label: Description carried by the timeout error
        clock: Monotonic time source
        sleep: Coroutine used to yield between evaluations

    Returns:
        True once the predicate holds

    Raises:
        ConditionTimeout: If the predicate is still false after timeout
    """
    started = clock()
    attempts = 0

    while clock() - started < timeout:
        attempts += 1
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            logger.debug(f"{label}: satisfied after {attempts} checks")
            return True
        await sleep(interval)

    logger.debug(f"{label}: gave up after {attempts} checks")
    raise ConditionTimeout(label, timeout)
