from __future__ import annotations

import time
from typing import Callable

from ..errors import AcquisitionTimeout


class SessionBudget:
    """
    Single wall-clock deadline shared by every step of one acquisition.

    Each browser operation asks for a step timeout and gets `min(step, remaining)`; once nothing is
    left, the next step raises `AcquisitionTimeout` instead of starting.
    """

    def __init__(self, total_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if total_seconds <= 0:
            raise ValueError("session budget must be positive")
        self.total_seconds = float(total_seconds)
        self._clock = clock
        self._deadline = clock() + self.total_seconds

    def remaining_ms(self) -> int:
        return max(0, int((self._deadline - self._clock()) * 1000))

    @property
    def expired(self) -> bool:
        return self.remaining_ms() <= 0

    def clamp(self, timeout_ms: int, *, step: str) -> int:
        remaining = self.remaining_ms()
        if remaining <= 0:
            raise AcquisitionTimeout(
                f"Session budget of {self.total_seconds:.0f}s exhausted before step: {step}",
                step=step,
            )
        return max(1, min(int(timeout_ms), remaining))

    def timeout_error(self, step: str) -> AcquisitionTimeout:
        return AcquisitionTimeout(
            f"Session budget of {self.total_seconds:.0f}s exhausted during step: {step}",
            step=step,
        )
