"""The transport seam between the dispatch engine and a chat service."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Protocol

from .events import Event, Identity


class Transport(Protocol):
    def events(self) -> AsyncGenerator[Event, None]:
        """Yield inbound events until the connection is closed for good.

        Consumers close the generator when they stop early, which must release
        the connection.
        """
        ...

    async def post_message(
        self, channel: str, text: str, *, markdown: bool = True, unfurl_media: bool = True,
    ) -> None: ...

    async def auth_test(self) -> Identity: ...
