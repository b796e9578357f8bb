"""Application settings -- read once from the environment and ``.env``.

Grouped dataclasses keep related settings together. A single
:class:`Settings` value is built at startup by :meth:`Settings.load` and
handed to each component's constructor; nothing here is module-global.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ConfigurationError
from ..util.env_file import EnvFile

DEFAULT_STORAGE_DOMAIN = "s3.amazonaws.com"
DEFAULT_MESSAGE_TIMEOUT = 2.0
DEFAULT_TRIGGER = "!"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SlackConfig:
    bot_token: str = ""
    app_token: str = ""
    bot_name: str = ""


@dataclass(frozen=True)
class ImageConfig:
    bucket: str = ""
    prefix: str = ""
    max_size_bytes: int = -1
    storage_domain: str = DEFAULT_STORAGE_DOMAIN


@dataclass(frozen=True)
class DispatchConfig:
    message_timeout: float = DEFAULT_MESSAGE_TIMEOUT
    trigger: str = DEFAULT_TRIGGER


@dataclass(frozen=True)
class Settings:
    """Runtime configuration sourced from environment variables and ``.env``."""

    slack: SlackConfig = field(default_factory=SlackConfig)
    images: ImageConfig = field(default_factory=ImageConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    debug: bool = False

    @classmethod
    def load(
        cls,
        environ: Mapping[str, str] | None = None,
        dotenv: str | Path | None = None,
    ) -> Settings:
        """Build settings from *environ* (default ``os.environ``) over a ``.env`` file.

        The ``.env`` path is *dotenv*, else ``DOTENV_PATH``, else ``./.env``.
        Values that fail to parse raise :class:`ConfigurationError`.
        """
        environ = os.environ if environ is None else environ
        path = dotenv or environ.get("DOTENV_PATH") or ".env"
        values = EnvFile(path).overlay(environ)
        e = values.get

        return cls(
            slack=SlackConfig(
                bot_token=e("SLACK_BOT_TOKEN", ""),
                app_token=e("SLACK_APP_TOKEN", ""),
                bot_name=e("PINBOT_NAME", ""),
            ),
            images=ImageConfig(
                bucket=e("PINBOT_BUCKET", ""),
                prefix=e("PINBOT_PREFIX", "").strip("/"),
                max_size_bytes=_parse_int("PINBOT_MAX_SIZE_BYTES", e("PINBOT_MAX_SIZE_BYTES", ""), -1),
                storage_domain=e("PINBOT_STORAGE_DOMAIN", "") or DEFAULT_STORAGE_DOMAIN,
            ),
            dispatch=DispatchConfig(
                message_timeout=_parse_float(
                    "PINBOT_MESSAGE_TIMEOUT", e("PINBOT_MESSAGE_TIMEOUT", ""), DEFAULT_MESSAGE_TIMEOUT,
                ),
                trigger=e("PINBOT_TRIGGER", "") or DEFAULT_TRIGGER,
            ),
            debug=e("PINBOT_DEBUG", "").lower() in _TRUTHY,
        )

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` naming every missing or invalid setting."""
        problems: list[str] = []
        if not self.slack.bot_token:
            problems.append("SLACK_BOT_TOKEN is required")
        if not self.slack.app_token:
            problems.append("SLACK_APP_TOKEN is required")
        if not self.images.bucket:
            problems.append("PINBOT_BUCKET is required")
        if not self.images.prefix:
            problems.append("PINBOT_PREFIX is required")
        if self.images.max_size_bytes <= 0:
            problems.append("PINBOT_MAX_SIZE_BYTES must be a positive number of bytes")
        if self.dispatch.message_timeout <= 0:
            problems.append("PINBOT_MESSAGE_TIMEOUT must be positive")
        if len(self.dispatch.trigger) != 1:
            problems.append("PINBOT_TRIGGER must be exactly one character")
        if problems:
            raise ConfigurationError("invalid configuration: " + "; ".join(problems))


def _parse_int(key: str, raw: str, default: int) -> int:
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None


def _parse_float(key: str, raw: str, default: float) -> float:
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
