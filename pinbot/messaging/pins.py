"""Chat commands for pinning, showing and listing images by name."""

from __future__ import annotations

import random

from yarl import URL

from ..errors import GENERIC_ERROR_RESPONSE, PinbotError, ValidationError
from ..media.fetch import Fetcher, check_url
from ..storage.images import ImageStore, Img
from ..storage.keys import check_pin_name
from .commands import CommandRouter
from .context import DispatchContext
from .events import Message

PIN_USAGE = "opps! try `!pin LINK NAME` instead."
SHOW_USAGE = "opps, there's nothing to show. try `!show NAME`."
LIST_USAGE = "opps, there's nothing to list. try `!list NAME`."
PIN_EXISTS_RESPONSE = "that pin already exists! pins are forever."
PINNED_RESPONSE = "k"
NOTHING_THERE_RESPONSE = "there's nothing there :("

# Slack escapes exactly these in message text; &amp; must be undone last
_SLACK_ENTITIES = (("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&"))


def unwrap_slack_link(text: str) -> str:
    """Undo Slack's ``<url>`` / ``<url|label>`` link formatting and its HTML escaping."""
    if text.startswith("<") and text.endswith(">"):
        text = text[1:-1]
    return unescape_slack(text.split("|", 1)[0])


def unescape_slack(text: str) -> str:
    for entity, char in _SLACK_ENTITIES:
        text = text.replace(entity, char)
    return text


def parse_url(text: str) -> URL:
    return check_url(unwrap_slack_link(text))


class PinCommands:
    """``pin``, ``show`` and ``list`` on top of a :class:`Fetcher` and an :class:`ImageStore`.

    User mistakes and backend failures become fixed, friendly replies; the
    details only go to the log.
    """

    def __init__(self, fetcher: Fetcher, store: ImageStore, *, rng: random.Random | None = None) -> None:
        self._fetcher = fetcher
        self._store = store
        self._rng = rng or random.Random()

    def register(self, router: CommandRouter) -> None:
        router.register_func("pin", "pin an image: pin LINK NAME", self.pin)
        router.register_func("show", "show a random image pinned as NAME: show NAME", self.show)
        router.register_func("list", "list every image pinned as NAME: list NAME", self.list)

    async def pin(self, ctx: DispatchContext, text: str, event: Message) -> str:
        args = text.split()
        if len(args) < 2:
            return PIN_USAGE

        try:
            url = parse_url(args[0])
            name = check_pin_name(args[1])
        except ValidationError as exc:
            ctx.log.info("rejected pin: %s", exc)
            return exc.user_message

        try:
            data, filetype = await self._fetcher.fetch(ctx, url)
        except ValidationError as exc:
            ctx.log.with_fields(url=url).info("fetch rejected: %s", exc)
            return exc.user_message
        except PinbotError:
            ctx.log.with_fields(url=url).exception("fetch failed")
            return GENERIC_ERROR_RESPONSE

        uploader = event.username or event.user
        try:
            img = await self._store.add(
                ctx, name, filetype, data, {"uploaded-by": uploader, "original-url": str(url)},
            )
        except PinbotError:
            ctx.log.with_fields(pin_name=name).exception("upload failed")
            return GENERIC_ERROR_RESPONSE

        if not img.created:
            return PIN_EXISTS_RESPONSE
        ctx.log.with_fields(name=img.name, img=img.id).info("uploaded")
        return PINNED_RESPONSE

    async def show(self, ctx: DispatchContext, text: str, event: Message) -> str:
        images = await self._lookup(ctx, text, SHOW_USAGE)
        if isinstance(images, str):
            return images
        return self._rng.choice(images).url

    async def list(self, ctx: DispatchContext, text: str, event: Message) -> str:
        images = await self._lookup(ctx, text, LIST_USAGE)
        if isinstance(images, str):
            return images
        return "\n".join(sorted(img.url for img in images))

    async def _lookup(self, ctx: DispatchContext, text: str, usage: str) -> list[Img] | str:
        """Return the images for the name in *text*, or a reply string."""
        args = text.split()
        if not args:
            return usage
        try:
            name = check_pin_name(args[0])
        except ValidationError as exc:
            return exc.user_message
        try:
            images = await self._store.list(ctx, name)
        except PinbotError:
            ctx.log.with_fields(pin_name=name).exception("listing images failed")
            return GENERIC_ERROR_RESPONSE
        return images or NOTHING_THERE_RESPONSE


async def echo(ctx: DispatchContext, text: str, event: Message) -> str:
    """Echo the text back. How fun!"""
    return text
