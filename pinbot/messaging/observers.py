"""Sequential, deadline-aware invocation of every registered observer."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .context import DispatchContext
from .events import Event


class Observer(Protocol):
    async def observe(self, ctx: DispatchContext, event: Event) -> None:
        """Handle one event. Raise to report a failure."""
        ...


class ObserverChain:
    """Runs observers one after another for a single event.

    Observer errors are logged and the chain moves on. The deadline is the
    only thing that stops it early: each observer runs under the context's
    timeout, and expiry after any observer skips the rest.
    """

    def __init__(self, observers: Iterable[Observer] = ()) -> None:
        self._observers: list[Observer] = list(observers)

    def add(self, observer: Observer) -> None:
        self._observers.append(observer)

    def __len__(self) -> int:
        return len(self._observers)

    async def observe(self, ctx: DispatchContext, event: Event) -> None:
        for index, observer in enumerate(self._observers):
            name = _observer_name(observer)
            try:
                async with ctx.timeout():
                    await observer.observe(ctx, event)
            except TimeoutError:
                ctx.log.with_fields(observer=name).error("observer timed out")
            except Exception:
                ctx.log.with_fields(observer=name).exception("error observing event")

            if ctx.expired:
                skipped = len(self._observers) - index - 1
                ctx.log.with_fields(skipped=skipped).error("timed out")
                return


def _observer_name(observer: Observer) -> str:
    return getattr(observer, "name", None) or type(observer).__name__
