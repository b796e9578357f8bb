"""Runtime configuration."""

from .settings import DispatchConfig, ImageConfig, Settings, SlackConfig

__all__ = ["DispatchConfig", "ImageConfig", "Settings", "SlackConfig"]
