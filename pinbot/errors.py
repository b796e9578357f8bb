"""Error taxonomy shared by every pinbot component."""

from __future__ import annotations

GENERIC_ERROR_RESPONSE = "opps. something went wrong."


class PinbotError(Exception):
    """Base class for all pinbot errors."""


class ConfigurationError(PinbotError):
    """Startup misconfiguration -- missing settings or duplicate commands."""


class ValidationError(PinbotError):
    """Bad user input.

    ``user_message`` is safe to show in chat; the exception text is only
    ever logged.
    """

    user_message: str = "you made an opps! that input isn't valid."

    def __init__(self, message: str = "", *, user_message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class SizeExceeded(ValidationError):
    user_message = "opps. that image is too big."

    def __init__(self, limit: int) -> None:
        super().__init__(f"response body exceeds {limit} bytes")
        self.limit = limit


class ImageTooLarge(ValidationError):
    """The image header declares more pixels than will be decoded."""

    user_message = "opps. that image is too big."


class UnsupportedType(ValidationError):
    user_message = "opps. that doesn't look like an image i can pin."

    def __init__(self, detected: str | None) -> None:
        super().__init__(f"unsupported content type: {detected or 'unknown'}")
        self.detected = detected


class StorageError(PinbotError):
    """The object-store backend failed a read or write."""


class TransportError(PinbotError):
    """A network call (chat API or image download) failed."""


class CommandError(PinbotError):
    """A registered command failed while running."""

    def __init__(self, name: str) -> None:
        super().__init__(f"cmd - {name}")
        self.name = name


class FatalError(PinbotError):
    """The transport gave up; the process should exit."""
