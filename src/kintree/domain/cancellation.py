"""Cooperative cancellation for long-running scans."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from itertools import count
from typing import TYPE_CHECKING

from kintree.domain.errors import ScanCancelledError

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(slots=True)
class Cancellation:
    """Cancellation token checked between units of scan work.

    Set ``event`` from another thread or give a ``deadline`` on the
    ``clock`` timeline; ``check`` raises ``ScanCancelledError`` once either
    fires.
    """

    event: threading.Event = field(default_factory=threading.Event)
    deadline: float | None = None
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> Cancellation:
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self) -> None:
        self.event.set()

    @property
    def cancelled(self) -> bool:
        return self.event.is_set() or self._expired()

    def check(self, stage: str) -> None:
        if self.event.is_set():
            raise ScanCancelledError(stage=stage, reason="cancelled by caller")
        if self._expired():
            raise ScanCancelledError(stage=stage, reason="deadline exceeded")

    def ticker(self, stage: str, *, every: int = 256) -> Callable[[], None]:
        """Callable for tight loops that runs ``check`` once every ``every`` calls."""

        calls = count(1)

        def tick() -> None:
            if next(calls) % every == 0:
                self.check(stage)

        return tick

    def _expired(self) -> bool:
        return self.deadline is not None and self.clock() >= self.deadline
