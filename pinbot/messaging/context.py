"""Per-event dispatch context: a deadline plus the event's logger."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from ..util.logfields import FieldLogger


@dataclass(frozen=True)
class DispatchContext:
    """Everything an observer needs to handle one event.

    *deadline* is an absolute time on the running loop's clock. Observers
    wrap their awaits in :meth:`timeout` so that an expired deadline aborts
    in-flight I/O instead of waiting for it to return.
    """

    deadline: float
    log: FieldLogger
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def start(cls, timeout: float, log: FieldLogger) -> DispatchContext:
        loop = asyncio.get_running_loop()
        return cls(deadline=loop.time() + timeout, log=log)

    def remaining(self) -> float:
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    @property
    def expired(self) -> bool:
        return asyncio.get_running_loop().time() >= self.deadline

    def timeout(self) -> asyncio.Timeout:
        """Async context manager that cancels its body at the deadline."""
        return asyncio.timeout_at(self.deadline)

    def with_fields(self, **fields: object) -> DispatchContext:
        return DispatchContext(
            deadline=self.deadline,
            log=self.log.with_fields(**fields),
            started_at=self.started_at,
        )

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)
