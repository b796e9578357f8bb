"""Prefix-triggered command router.

The router is an observer: for every message that starts with the trigger
character and a registered command name, it strips the trigger and name,
runs the command, and posts any non-empty reply back to the channel.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from ..errors import CommandError, ConfigurationError, TransportError
from .context import DispatchContext
from .events import Event, Identity, Message
from .transport import Transport

CommandFn = Callable[[DispatchContext, str, Message], Awaitable[str]]


class Command(Protocol):
    def help(self) -> str:
        """A short description of this command."""
        ...

    async def run(self, ctx: DispatchContext, text: str, event: Message) -> str:
        """Run the command on *text* (the message minus trigger and name).

        The returned string is posted as the reply; an empty string posts
        nothing. Raise to report a failure -- the error is logged, never
        shown to the user.
        """
        ...


@dataclass(frozen=True)
class CommandFunc:
    """Adapts a plain coroutine function and a help string to :class:`Command`."""

    help_text: str
    fn: CommandFn

    def help(self) -> str:
        return self.help_text

    async def run(self, ctx: DispatchContext, text: str, event: Message) -> str:
        return await self.fn(ctx, text, event)


class CommandRouter:
    name = "commands"

    def __init__(self, transport: Transport, identity: Identity, *, prefix: str = "!") -> None:
        if len(prefix) != 1:
            raise ConfigurationError(f"command prefix must be one character, got {prefix!r}")
        self._transport = transport
        self._identity = identity
        self.prefix = prefix
        self._re = re.compile(rf"^{re.escape(prefix)}([A-Za-z0-9_]+)\s*")
        self._commands: dict[str, Command] = {}
        self.register_func("help", "list all commands", self._help)

    # -- registration ------------------------------------------------------

    def register(self, name: str, command: Command) -> None:
        """Register *command* under *name*.

        A second registration under the same name is a programming error and
        raises :class:`ConfigurationError`; nothing is overwritten.
        """
        if name in self._commands:
            raise ConfigurationError(f"can't register the same command twice: {name!r}")
        self._commands[name] = command

    def register_func(self, name: str, help_text: str, fn: CommandFn) -> None:
        self.register(name, CommandFunc(help_text, fn))

    def command(self, name: str, help_text: str) -> Callable[[CommandFn], CommandFn]:
        """Decorator form of :meth:`register_func`."""

        def decorator(fn: CommandFn) -> CommandFn:
            self.register_func(name, help_text, fn)
            return fn

        return decorator

    @property
    def names(self) -> list[str]:
        return sorted(self._commands)

    # -- dispatch ----------------------------------------------------------

    def match(self, text: str) -> tuple[str, str] | None:
        """Split *text* into ``(command name, remainder)``, or ``None``."""
        m = self._re.match(text)
        if m is None:
            return None
        return m.group(1), text[m.end():]

    def _is_own(self, event: Message) -> bool:
        me = self._identity
        return bool(
            (me.user_id and event.user == me.user_id)
            or (me.name and event.username == me.name)
            or (me.bot_id and event.bot_id == me.bot_id)
        )

    async def observe(self, ctx: DispatchContext, event: Event) -> None:
        if not isinstance(event, Message) or self._is_own(event):
            return

        log = ctx.log.with_fields(observer=self.name)
        matched = self.match(event.text)
        if matched is None:
            log.debug("message not matched")
            return

        cmd_name, remainder = matched
        log = log.with_fields(cmd=cmd_name)
        command = self._commands.get(cmd_name)
        if command is None:
            log.debug("cmd not found")
            return

        log.debug("running command")
        try:
            reply = await command.run(ctx.with_fields(observer=self.name, cmd=cmd_name), remainder, event)
        except TimeoutError:
            raise
        except Exception as exc:
            raise CommandError(cmd_name) from exc

        if reply:
            try:
                async with ctx.timeout():
                    await self._transport.post_message(event.channel, reply)
            except (TimeoutError, TransportError):
                raise
            except Exception as exc:
                raise TransportError(f"post reply to {event.channel}: {exc}") from exc

    async def _help(self, ctx: DispatchContext, text: str, event: Message) -> str:
        lines = [
            f"{self.prefix}{name} - {self._commands[name].help()}"
            for name in self.names
            if name != "help"
        ]
        return "\n".join(lines)
