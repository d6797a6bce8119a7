"""
Readiness poller — fixed-interval, bounded-attempt polling.

    probe() → True   ready, return attempts used
    probe() → False  sleep(interval), try again
    N failures       ReadinessTimeoutError

The probe runs exactly ``max_attempts`` times at most and there is
no sleep after the final attempt. No backoff, no jitter.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from hostprov.core.errors import ReadinessTimeoutError

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]


@dataclass
class ReadinessPoller:
    """Poll a probe until it succeeds or the attempt budget runs out.

    Args:
        max_attempts: Probe invocations before giving up (>= 1).
        interval: Seconds slept between attempts.
        sleep: Sleep function (injected in tests).
    """

    max_attempts: int = 30
    interval: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")

    def await_ready(self, probe: Probe, name: str = "") -> int:
        """Run ``probe`` until it returns True.

        Returns:
            Number of attempts it took.

        Raises:
            ReadinessTimeoutError: After ``max_attempts`` failures.
        """
        for attempt in range(1, self.max_attempts + 1):
            if probe():
                if attempt > 1:
                    logger.debug("%s ready after %d attempts", name or "probe", attempt)
                return attempt
            if attempt < self.max_attempts:
                logger.debug(
                    "%s not ready (attempt %d/%d), retrying in %gs",
                    name or "probe", attempt, self.max_attempts, self.interval,
                )
                self.sleep(self.interval)

        raise ReadinessTimeoutError(name, self.max_attempts, self.interval)


def await_ready(
    probe: Probe,
    max_attempts: int = 30,
    interval: float = 2.0,
    *,
    name: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Functional form of ``ReadinessPoller.await_ready``."""
    return ReadinessPoller(max_attempts, interval, sleep).await_ready(probe, name=name)
