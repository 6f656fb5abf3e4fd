"""Backoff policy for commit status polling."""

import random
import threading
import time
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff with jitter.

    The delay before poll ``attempt`` (0-based) is
    ``min(max_delay, base_delay * multiplier ** attempt)``; with jitter
    enabled the actual wait is drawn from the upper half of that ceiling.

    Attributes:
        base_delay: First delay in seconds
        max_delay: Cap for any single delay in seconds
        multiplier: Growth factor per attempt
        jitter: Randomize delays to spread concurrent pollers
        max_transient_retries: Consecutive transient poll failures tolerated
            before the commit is reported as failed
    """

    base_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: bool = True
    max_transient_retries: int = 5

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError("Backoff multiplier must be >= 1")
        if self.max_transient_retries < 0:
            raise ValueError("max_transient_retries must be >= 0")

    def ceiling(self, attempt: int) -> float:
        try:
            uncapped = self.base_delay * (self.multiplier ** attempt)
        except OverflowError:
            # Past float range the cap has long been reached
            return self.max_delay
        return min(self.max_delay, uncapped)

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        ceiling = self.ceiling(attempt)
        if not self.jitter or ceiling == 0:
            return ceiling
        rng = rng or random
        return ceiling / 2 + rng.uniform(0, ceiling / 2)


def wait_for_cancel(delay: float, cancel_event: Optional[threading.Event] = None) -> bool:
    """
    Suspend for ``delay`` seconds.

    Returns:
        True if ``cancel_event`` was set before or during the wait
    """
    if cancel_event is None:
        time.sleep(delay)
        return False
    return cancel_event.wait(delay)
