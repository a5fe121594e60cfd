#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import random

DEFAULT_MIN_BACKOFF_SECONDS = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0
# past this many doublings any sane maximum is reached anyway
MAX_BACKOFF_EXPONENT = 32


class Backoff:
    """
    Exponential retry delay: min_delay * factor ** attempt, capped at max_delay.
    duration() returns the current delay and advances to the next one; reset() goes back to min_delay.

    With jitter, each delay is spread by +-20% (still within [min_delay, max_delay]), so consecutive delays are no
    longer guaranteed to strictly increase.
    """

    def __init__(
        self,
        max_delay: float,
        min_delay: float = DEFAULT_MIN_BACKOFF_SECONDS,
        factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter: bool = False,
    ):
        assert 0 < min_delay <= max_delay, f"invalid backoff range [{min_delay}, {max_delay}]"
        assert factor > 1, f"invalid backoff factor {factor}"
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self._attempt = 0

    @property
    def attempt(self) -> int:
        return self._attempt

    def _delay_for(self, attempt: int) -> float:
        delay = self.min_delay * self.factor ** min(attempt, MAX_BACKOFF_EXPONENT)
        if self.jitter:
            delay *= random.uniform(0.8, 1.2)
        return max(self.min_delay, min(delay, self.max_delay))

    def peek(self) -> float:
        return self._delay_for(self._attempt)

    def duration(self) -> float:
        delay = self._delay_for(self._attempt)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0
