"""Retry policy for transient tree-lock conflicts."""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 3
    backoff_factor: float = 0.05
    max_backoff_wait: float = 2.0
    backoff_jitter: float = 0.0

    def backoff(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        delay = min(self.backoff_factor * (2 ** (attempt - 1)), self.max_backoff_wait)
        if self.backoff_jitter:
            delay += random.uniform(0, self.backoff_jitter)  # noqa: S311
        return delay
