"""Event loop -- one task per inbound event, each fed to the observer chain.

Run until the transport reports a failure it will not recover from; that
failure is fatal to the process. Reconnects are the transport's business.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid

from ..errors import ConfigurationError, FatalError
from ..util.logfields import FieldLogger, field_logger
from .context import DispatchContext
from .events import Connected, Event, Identity, LatencyReport, Ping, TransportFailure
from .observers import ObserverChain
from .transport import Transport


class Bot:
    def __init__(
        self,
        transport: Transport,
        chain: ObserverChain,
        *,
        message_timeout: float,
        name: str = "",
        user_id: str = "",
    ) -> None:
        self._transport = transport
        self._chain = chain
        self.message_timeout = message_timeout
        # both filled in by test_auth() when left blank
        self.name = name
        self.user_id = user_id
        self.bot_id = ""
        self._log = field_logger(__name__)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def identity(self) -> Identity:
        return Identity(name=self.name, user_id=self.user_id, bot_id=self.bot_id)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def test_auth(self) -> Identity:
        """Check credentials and reconcile the configured identity with the real one.

        Must complete before :meth:`run`.
        """
        actual = await self._transport.auth_test()
        if not self.name:
            self.name = actual.name
        if actual.name != self.name:
            raise ConfigurationError(
                f"testauth: configured and actual usernames differ: configured={self.name!r} actual={actual.name!r}"
            )
        if not self.user_id:
            self.user_id = actual.user_id
        if actual.user_id != self.user_id:
            raise ConfigurationError(
                f"testauth: configured and actual user_id differ: configured={self.user_id!r} actual={actual.user_id!r}"
            )
        self.bot_id = actual.bot_id
        return self.identity

    async def run(self) -> None:
        """Consume the transport's events forever.

        Only ever exits by raising :class:`FatalError`. The event stream is
        closed and in-flight event tasks are cancelled on the way out.
        """
        try:
            async with contextlib.aclosing(self._transport.events()) as events:
                async for event in events:
                    log = self._log.with_fields(request_id=uuid.uuid4())

                    if isinstance(event, TransportFailure):
                        log.with_fields(error=event.error).error("unhandled error")
                        raise FatalError(f"transport failed: {event.error}") from event.error

                    if isinstance(event, Connected):
                        log.info("connected")
                    elif isinstance(event, LatencyReport):
                        log.with_fields(latency=event.value_ms).debug("latency report")
                    elif isinstance(event, Ping):
                        log.with_fields(ping_id=event.id).debug("ping")

                    self.spawn(event, log)
        finally:
            await self._cancel_in_flight()

        raise FatalError("transport event stream closed")

    def spawn(self, event: Event, log: FieldLogger) -> asyncio.Task[None]:
        task = asyncio.create_task(self.observe(event, log))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def observe(self, event: Event, log: FieldLogger) -> None:
        """Run the whole observer chain for one event under a fresh deadline."""
        ctx = DispatchContext.start(self.message_timeout, log)
        try:
            await self._chain.observe(ctx, event)
        finally:
            ctx.log.with_fields(elapsed_ms=ctx.elapsed_ms()).debug("complete")

    async def _cancel_in_flight(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
