"""Bounded image download.

The body is read in chunks and never buffered past ``max_bytes + 1``;
the filetype comes from the bytes themselves, never from the URL.
"""

from __future__ import annotations

import aiohttp
from yarl import URL

from ..errors import SizeExceeded, TransportError, ValidationError
from ..messaging.context import DispatchContext
from .classify import sniff

CHUNK_SIZE = 64 * 1024
USER_AGENT = "pinbot/0.1"
INVALID_URL_RESPONSE = "you made an opps! that's not a valid URL."


class Fetcher:
    """Downloads user-supplied image URLs over a shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession, max_bytes: int) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be positive")
        self._session = session
        self.max_bytes = max_bytes

    async def fetch(
        self, ctx: DispatchContext, url: str | URL, max_bytes: int | None = None,
    ) -> tuple[bytes, str]:
        """Return ``(body, filetype)`` for *url*.

        Raises :class:`SizeExceeded` as soon as more than *max_bytes* have
        arrived, :class:`UnsupportedType` for non-image content, and
        :class:`TransportError` for network or HTTP failures. The whole
        download is bound to the context deadline.
        """
        limit = self.max_bytes if max_bytes is None else max_bytes
        target = check_url(url)
        log = ctx.log.with_fields(url=target)

        async with ctx.timeout():
            try:
                async with self._session.get(
                    target, headers={"User-Agent": USER_AGENT}, allow_redirects=True,
                ) as resp:
                    if resp.status >= 400:
                        raise TransportError(f"GET {target}: HTTP {resp.status}")
                    if resp.content_length is not None and resp.content_length > limit:
                        log.debug("declared content-length %d over limit %d", resp.content_length, limit)
                        raise SizeExceeded(limit)
                    body = await read_bounded(resp.content, limit)
            except aiohttp.ClientError as exc:
                raise TransportError(f"GET {target}: {exc}") from exc

        filetype = sniff(body)
        log.debug("fetched %d bytes of %s", len(body), filetype)
        return body, filetype


async def read_bounded(stream: aiohttp.StreamReader, limit: int) -> bytes:
    """Read *stream* to EOF, failing once more than *limit* bytes are seen.

    At most ``limit + 1`` bytes are ever held in memory.
    """
    buf = bytearray()
    ceiling = limit + 1
    while len(buf) < ceiling:
        chunk = await stream.read(min(CHUNK_SIZE, ceiling - len(buf)))
        if not chunk:
            return bytes(buf)
        buf.extend(chunk)
    raise SizeExceeded(limit)


def check_url(url: str | URL) -> URL:
    """Parse *url*, accepting only absolute http(s) URLs with a host."""
    try:
        parsed = url if isinstance(url, URL) else URL(url)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"unparseable url {url!r}", user_message=INVALID_URL_RESPONSE) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValidationError(f"not an http(s) url: {url!s}", user_message=INVALID_URL_RESPONSE)
    return parsed

