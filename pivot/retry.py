"""Bounded retry of an operation at a fixed interval.

Every wait in the bootstrap (the git server becoming reachable, a pod
reaching Running, a push being accepted) is expressed as a predicate that is
polled with its own `RetryBudget`:

```python
from pivot.retry import RetryBudget, wait_until

attempts = await wait_until(
    probe, RetryBudget(max_attempts=60, interval=3.0), "git server health",
    exc=ReachabilityTimeout,
)
```
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging

from .exceptions import PivotException

__all__ = [
    "RetryBudget",
    "wait_until",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryBudget:
    """The attempts allowed for one waiting operation."""

    max_attempts: int
    """Total number of times the predicate is evaluated."""

    interval: float
    """Seconds slept between two attempts."""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive: {self.max_attempts}")
        if self.interval < 0:
            raise ValueError(f"interval must not be negative: {self.interval}")


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    budget: RetryBudget,
    description: str,
    exc: type[PivotException],
    retry_on: tuple[type[Exception], ...] = (),
) -> int:
    """Poll the predicate until it returns true or the budget runs out.

    Exceptions of the `retry_on` types count as a failed attempt, anything
    else propagates immediately. Returns the number of attempts made and
    raises `exc` once every attempt has failed.
    """
    last_error: str | None = None
    for attempt in range(1, budget.max_attempts + 1):
        try:
            if await predicate():
                _LOGGER.debug("%s succeeded on attempt %d", description, attempt)
                return attempt
            last_error = None
        except retry_on as err:
            last_error = str(err)
        _LOGGER.info(
            "[try %d/%d] %s not ready%s",
            attempt,
            budget.max_attempts,
            description,
            f": {last_error}" if last_error else "",
        )
        if attempt < budget.max_attempts:
            await asyncio.sleep(budget.interval)
    message = f"{description} failed after {budget.max_attempts} attempts"
    if last_error:
        message += f": {last_error}"
    raise exc(message)
