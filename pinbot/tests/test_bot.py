"""Tests for the Bot event loop."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Sequence
from unittest.mock import AsyncMock

import pytest

from pinbot.errors import ConfigurationError, FatalError, TransportError
from pinbot.messaging.bot import Bot
from pinbot.messaging.context import DispatchContext
from pinbot.messaging.events import Connected, Event, Identity, LatencyReport, Message, Ping, TransportFailure
from pinbot.messaging.observers import ObserverChain


class ScriptedTransport:
    """Yields *events* with a pause between each, then ends the stream."""

    def __init__(self, events: Sequence[Event], gap: float = 0.02, identity: Identity | None = None) -> None:
        self._events = list(events)
        self._gap = gap
        self.post_message = AsyncMock()
        self.auth_test = AsyncMock(return_value=identity or Identity("pinbot", "UBOT", "BBOT"))
        self.closed = False

    async def events(self) -> AsyncGenerator[Event, None]:
        try:
            for event in self._events:
                yield event
                await asyncio.sleep(self._gap)
        finally:
            self.closed = True


class Recorder:
    def __init__(self, delay: float = 0.0) -> None:
        self.seen: list[Event] = []
        self.deadlines: list[float] = []
        self.delay = delay
        self.cancelled = 0

    async def observe(self, ctx: DispatchContext, event: Event) -> None:
        self.seen.append(event)
        self.deadlines.append(ctx.deadline)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


def _bot(transport: ScriptedTransport, *observers: Recorder, timeout: float = 5.0, **kwargs: str) -> Bot:
    return Bot(transport, ObserverChain(observers), message_timeout=timeout, **kwargs)


class TestAuth:
    @pytest.mark.asyncio
    async def test_fills_blank_identity(self) -> None:
        bot = _bot(ScriptedTransport([]))
        identity = await bot.test_auth()
        assert identity == Identity("pinbot", "UBOT", "BBOT")
        assert bot.identity == identity

    @pytest.mark.asyncio
    async def test_configured_identity_matches(self) -> None:
        bot = _bot(ScriptedTransport([]), name="pinbot", user_id="UBOT")
        assert (await bot.test_auth()).bot_id == "BBOT"

    @pytest.mark.asyncio
    async def test_name_mismatch(self) -> None:
        bot = _bot(ScriptedTransport([]), name="garfield")
        with pytest.raises(ConfigurationError, match="usernames differ"):
            await bot.test_auth()

    @pytest.mark.asyncio
    async def test_user_id_mismatch(self) -> None:
        bot = _bot(ScriptedTransport([]), user_id="UOTHER")
        with pytest.raises(ConfigurationError, match="user_id differ"):
            await bot.test_auth()

    @pytest.mark.asyncio
    async def test_auth_failure_propagates(self) -> None:
        transport = ScriptedTransport([])
        transport.auth_test.side_effect = TransportError("invalid_auth")
        with pytest.raises(TransportError):
            await _bot(transport).test_auth()


class TestRun:
    @pytest.mark.asyncio
    async def test_dispatches_then_fails(self) -> None:
        rec = Recorder()
        msg = Message(channel="C1", text="!echo hi")
        boom = TransportError("socket gone")
        bot = _bot(ScriptedTransport([Connected(), msg, TransportFailure(boom)]), rec)

        with pytest.raises(FatalError) as info:
            await bot.run()

        assert info.value.__cause__ is boom
        assert rec.seen == [Connected(), msg]

    @pytest.mark.asyncio
    async def test_housekeeping_events_logged_and_dispatched(self, caplog: pytest.LogCaptureFixture) -> None:
        rec = Recorder()
        events = [LatencyReport(value_ms=12.5), Ping(id="p1")]
        bot = _bot(ScriptedTransport(events), rec)
        with caplog.at_level("DEBUG", logger="pinbot.messaging.bot"):
            with pytest.raises(FatalError):
                await bot.run()
        assert rec.seen == events
        assert "latency=12.5" in caplog.text
        assert "ping_id=p1" in caplog.text

    @pytest.mark.asyncio
    async def test_stream_closed_when_run_raises(self) -> None:
        # more events are queued behind the failure; the stream must still be released
        transport = ScriptedTransport([TransportFailure(TransportError("x")), Message(channel="C1", text="late")])
        with pytest.raises(FatalError):
            await _bot(transport, Recorder()).run()
        assert transport.closed is True

    @pytest.mark.asyncio
    async def test_failure_is_not_dispatched(self) -> None:
        rec = Recorder()
        bot = _bot(ScriptedTransport([TransportFailure(TransportError("x"))]), rec)
        with pytest.raises(FatalError):
            await bot.run()
        await asyncio.sleep(0)
        assert rec.seen == []

    @pytest.mark.asyncio
    async def test_stream_closed_is_fatal(self) -> None:
        bot = _bot(ScriptedTransport([Message(channel="C1", text="hi")]), Recorder())
        with pytest.raises(FatalError, match="stream closed"):
            await bot.run()

    @pytest.mark.asyncio
    async def test_events_handled_concurrently(self) -> None:
        # each observer takes longer than the gap between events
        rec = Recorder(delay=0.2)
        events = [Message(channel="C1", text=str(i)) for i in range(3)]
        bot = _bot(ScriptedTransport(events, gap=0.05), rec)

        loop = asyncio.get_running_loop()
        started = loop.time()
        run = asyncio.create_task(bot.run())
        await asyncio.sleep(0.12)

        assert len(rec.seen) == 3
        assert bot.in_flight == 3
        with pytest.raises(FatalError):
            await run
        assert loop.time() - started < 0.6

    @pytest.mark.asyncio
    async def test_each_event_gets_its_own_deadline(self) -> None:
        rec = Recorder()
        events = [Message(channel="C1", text=str(i)) for i in range(2)]
        bot = _bot(ScriptedTransport(events, gap=0.05), rec, timeout=1.0)
        with pytest.raises(FatalError):
            await bot.run()
        first, second = rec.deadlines
        assert second > first

    @pytest.mark.asyncio
    async def test_in_flight_cancelled_on_exit(self) -> None:
        rec = Recorder(delay=10)
        bot = _bot(ScriptedTransport([Message(channel="C1", text="hi")]), rec, timeout=30)
        with pytest.raises(FatalError):
            await bot.run()
        assert rec.cancelled == 1
        assert bot.in_flight == 0

    @pytest.mark.asyncio
    async def test_observer_errors_do_not_stop_the_loop(self) -> None:
        class Broken:
            async def observe(self, ctx: DispatchContext, event: Event) -> None:
                raise RuntimeError("nope")

        rec = Recorder()
        events = [Message(channel="C1", text="a"), Message(channel="C1", text="b")]
        bot = Bot(ScriptedTransport(events), ObserverChain([Broken(), rec]), message_timeout=5)
        with pytest.raises(FatalError, match="stream closed"):
            await bot.run()
        assert len(rec.seen) == 2
