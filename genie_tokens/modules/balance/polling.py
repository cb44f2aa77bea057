"""Poll-until-predicate helper shared by the reconciliation flows."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

from genie_tokens.core.exceptions import GenieException
from genie_tokens.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Delay in seconds to wait after a missed attempt, keyed by its 1-based number
Schedule = Callable[[int], float]
Sleep = Callable[[float], Awaitable[None]]


def fixed_schedule(seconds: float) -> Schedule:
    return lambda attempt: seconds


def stepped_schedule(steps: dict[int, float], default: float) -> Schedule:
    return lambda attempt: steps.get(attempt, default)


@dataclass
class PollOutcome(Generic[T]):
    succeeded: bool
    attempts: int
    last_value: T | None = None
    superseded: bool = False


async def poll_until(
    fetch: Callable[[int], Awaitable[T]],
    predicate: Callable[[T], bool],
    schedule: Schedule,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    should_continue: Callable[[], bool] = lambda: True,
) -> PollOutcome[T]:
    """Call ``fetch`` until ``predicate`` holds or ``max_attempts`` are used.

    Attempts run strictly one after another. A fetch that raises a
    GenieException uses up its attempt and polling continues. No sleep
    follows the final attempt. ``should_continue`` is checked before every
    attempt so a newer poll can take over.
    """
    last_value: T | None = None

    for attempt in range(1, max_attempts + 1):
        if not should_continue():
            return PollOutcome(
                succeeded=False,
                attempts=attempt - 1,
                last_value=last_value,
                superseded=True,
            )

        try:
            value = await fetch(attempt)
        except GenieException as e:
            logger.warning(
                "Poll attempt failed",
                attempt=attempt,
                max_attempts=max_attempts,
                error=e.message_code.value,
            )
        else:
            last_value = value
            if predicate(value):
                return PollOutcome(
                    succeeded=True, attempts=attempt, last_value=value
                )

        if attempt < max_attempts:
            await sleep(schedule(attempt))

    return PollOutcome(succeeded=False, attempts=max_attempts, last_value=last_value)
