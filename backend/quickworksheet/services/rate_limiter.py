"""Per-session admission control for generation-endpoint calls.

Two independent limits: a hard ceiling on calls per session and a fixed
cooldown between consecutive calls. An admitted attempt is recorded before
the network call is made, so failed calls still count.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from quickworksheet.services.errors import AdmissionError


@dataclass(frozen=True)
class Admission:
    allowed: bool
    retry_after: Optional[float] = None
    reason: str = ""


class RateLimiter:
    def __init__(
        self,
        max_calls: int = 5,
        cooldown_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_calls = max_calls
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.call_count = 0
        self.last_call_at: Optional[float] = None

    def check(self) -> Admission:
        """Evaluate both limits without recording anything."""
        if self.call_count >= self.max_calls:
            return Admission(
                allowed=False,
                reason="You've reached the maximum number of generations for this session.",
            )
        if self.last_call_at is not None:
            elapsed = self._clock() - self.last_call_at
            if elapsed < self.cooldown_seconds:
                remaining = self.cooldown_seconds - elapsed
                return Admission(
                    allowed=False,
                    retry_after=remaining,
                    reason=(
                        f"Please wait {math.ceil(remaining)} seconds before "
                        "generating another worksheet."
                    ),
                )
        return Admission(allowed=True)

    def try_admit(self) -> Admission:
        """Check both limits and record the attempt when admitted."""
        admission = self.check()
        if admission.allowed:
            self.call_count += 1
            self.last_call_at = self._clock()
        return admission

    def admit(self) -> None:
        """Like try_admit, but raise AdmissionError on rejection."""
        admission = self.try_admit()
        if not admission.allowed:
            raise AdmissionError(admission.reason, retry_after=admission.retry_after)

    @property
    def remaining_calls(self) -> int:
        return max(0, self.max_calls - self.call_count)
