"""Entry point -- wire settings, storage, Slack and the command router together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import aiohttp
import boto3
from botocore.config import Config as BotoConfig

from .config.settings import Settings
from .errors import ConfigurationError, FatalError, PinbotError
from .media.fetch import Fetcher
from .messaging.bot import Bot
from .messaging.commands import CommandRouter
from .messaging.events import Identity
from .messaging.observers import ObserverChain
from .messaging.pins import PinCommands, echo
from .messaging.slack import SlackTransport
from .messaging.transport import Transport
from .storage.images import ImageStore

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pinbot", description="Pin images by name from Slack.")
    parser.add_argument("--debug", action="store_true", help="debug logging")
    parser.add_argument(
        "--dump-websocket-messages",
        action="store_true",
        help="log every received websocket frame (needs --debug)",
    )
    return parser.parse_args(argv)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
        stream=sys.stdout,
    )
    if not debug:
        for noisy in ("botocore", "boto3", "urllib3", "slack_sdk"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


def build_router(
    settings: Settings,
    transport: Transport,
    identity: Identity,
    fetcher: Fetcher,
    store: ImageStore,
) -> CommandRouter:
    """Create the router with every built-in command registered."""
    router = CommandRouter(transport, identity, prefix=settings.dispatch.trigger)
    router.register_func("echo", "echo your message back. how fun!", echo)
    PinCommands(fetcher, store).register(router)
    return router


def build_store(settings: Settings) -> ImageStore:
    timeout = settings.dispatch.message_timeout
    client = boto3.client(
        "s3",
        config=BotoConfig(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 1}),
    )
    return ImageStore(
        client,
        bucket=settings.images.bucket,
        prefix=settings.images.prefix,
        domain=settings.images.storage_domain,
    )


async def serve(settings: Settings, *, dump_frames: bool = False) -> None:
    transport = SlackTransport(
        settings.slack.bot_token, settings.slack.app_token, dump_frames=dump_frames,
    )
    chain = ObserverChain()
    bot = Bot(
        transport,
        chain,
        message_timeout=settings.dispatch.message_timeout,
        name=settings.slack.bot_name,
    )
    identity = await bot.test_auth()
    logger.info("authenticated as %s (%s)", identity.name, identity.user_id)

    async with aiohttp.ClientSession() as session:
        fetcher = Fetcher(session, settings.images.max_size_bytes)
        router = build_router(settings, transport, identity, fetcher, build_store(settings))
        chain.add(router)
        logger.info("commands: %s", ", ".join(router.names))
        await bot.run()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = Settings.load()
        settings.validate()
    except ConfigurationError as exc:
        configure_logging(args.debug)
        logger.error("can't start! %s", exc)
        return 2

    debug = args.debug or settings.debug
    configure_logging(debug)

    try:
        asyncio.run(serve(settings, dump_frames=args.dump_websocket_messages))
    except KeyboardInterrupt:
        return 0
    except ConfigurationError as exc:
        logger.error("can't start! %s", exc)
        return 2
    except FatalError as exc:
        logger.error("exiting with a fatal error: %s", exc)
        return 1
    except PinbotError as exc:
        logger.error("can't start! failed an auth test: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
