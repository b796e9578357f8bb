"""Inbound event variants delivered by a transport."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    channel: str
    text: str
    user: str = ""
    username: str = ""
    bot_id: str = ""
    ts: str = ""


@dataclass(frozen=True)
class Connected:
    app_id: str = ""
    connections: int = 0


@dataclass(frozen=True)
class LatencyReport:
    value_ms: float


@dataclass(frozen=True)
class Ping:
    id: str = ""


@dataclass(frozen=True)
class TransportFailure:
    """The transport hit an error it will not recover from."""

    error: BaseException


Event = Message | Connected | LatencyReport | Ping | TransportFailure


@dataclass(frozen=True)
class Identity:
    """The bot's own account, as reported by the chat service."""

    name: str
    user_id: str
    bot_id: str = ""
