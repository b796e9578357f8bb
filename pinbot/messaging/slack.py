"""Slack Socket Mode transport.

Wraps slack_sdk's aiohttp Socket Mode client: every envelope is
acknowledged, ``message`` events become :class:`Message`, the ``hello``
frame becomes :class:`Connected`, and a connection that is gone for good
becomes :class:`TransportFailure`. Reconnecting is left to slack_sdk.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Any

from slack_sdk.errors import SlackClientError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from ..errors import TransportError
from .events import Connected, Event, Identity, Message, TransportFailure

logger = logging.getLogger(__name__)

# message subtypes that are edits or membership noise rather than new text
IGNORED_SUBTYPES = frozenset({
    "message_changed",
    "message_deleted",
    "message_replied",
    "channel_join",
    "channel_leave",
    "group_join",
    "group_leave",
})


def message_from_payload(event: dict[str, Any]) -> Message | None:
    """Convert an Events API ``message`` payload, or return ``None`` to skip it."""
    if event.get("type") != "message" or event.get("subtype") in IGNORED_SUBTYPES:
        return None
    channel = event.get("channel")
    if not channel:
        return None
    return Message(
        channel=channel,
        text=event.get("text") or "",
        user=event.get("user") or "",
        username=event.get("username") or "",
        bot_id=event.get("bot_id") or "",
        ts=event.get("ts") or "",
    )


class SlackTransport:
    def __init__(
        self,
        bot_token: str,
        app_token: str,
        *,
        dump_frames: bool = False,
        auto_reconnect: bool = True,
        web_client: AsyncWebClient | None = None,
        socket_client: SocketModeClient | None = None,
    ) -> None:
        self.web = web_client or AsyncWebClient(token=bot_token)
        self._dump_frames = dump_frames
        self._auto_reconnect = auto_reconnect
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._socket = socket_client or SocketModeClient(
            app_token=app_token,
            web_client=self.web,
            auto_reconnect_enabled=auto_reconnect,
            on_error_listeners=[self._on_ws_error],
            on_close_listeners=[self._on_ws_close],
        )
        self._socket.socket_mode_request_listeners.append(self._on_request)
        self._socket.message_listeners.append(self._on_frame)

    # -- Transport ---------------------------------------------------------

    async def events(self) -> AsyncGenerator[Event, None]:
        try:
            await self._socket.connect()
        except Exception as exc:
            yield TransportFailure(exc)
            return

        try:
            while True:
                event = await self._queue.get()
                yield event
                if isinstance(event, TransportFailure):
                    return
        finally:
            await self._socket.close()

    async def post_message(
        self, channel: str, text: str, *, markdown: bool = True, unfurl_media: bool = True,
    ) -> None:
        try:
            await self.web.chat_postMessage(
                channel=channel, text=text, mrkdwn=markdown, unfurl_media=unfurl_media,
            )
        except SlackClientError as exc:
            raise TransportError(f"slack.message.post: {exc}") from exc

    async def auth_test(self) -> Identity:
        try:
            resp = await self.web.auth_test()
        except SlackClientError as exc:
            raise TransportError(f"slack.auth.test: {exc}") from exc
        return Identity(
            name=resp.get("user") or "",
            user_id=resp.get("user_id") or "",
            bot_id=resp.get("bot_id") or "",
        )

    # -- socket mode listeners ---------------------------------------------

    async def _on_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        if req.type != "events_api":
            logger.debug("ignoring %s envelope", req.type)
            return
        message = message_from_payload(req.payload.get("event") or {})
        if message is not None:
            self._queue.put_nowait(message)

    async def _on_frame(self, client: SocketModeClient, message: dict, raw_message: str | None) -> None:
        if self._dump_frames:
            logger.debug("websocket frame: %s", raw_message)
        frame_type = message.get("type")
        if frame_type == "hello":
            info = message.get("connection_info") or {}
            self._queue.put_nowait(
                Connected(app_id=info.get("app_id", ""), connections=message.get("num_connections", 0))
            )
        elif frame_type == "disconnect":
            logger.info("slack requested disconnect: %s", message.get("reason"))

    async def _on_ws_error(self, msg: Any) -> None:
        logger.warning("websocket error: %s", getattr(msg, "data", msg))
        if not self._auto_reconnect:
            self._queue.put_nowait(TransportFailure(TransportError(f"websocket error: {msg}")))

    async def _on_ws_close(self, msg: Any) -> None:
        if not self._auto_reconnect:
            self._queue.put_nowait(TransportFailure(TransportError("websocket closed")))
        else:
            logger.info("websocket closed, reconnecting")
