"""pinbot -- a chat bot that pins images by name into an object store."""

__version__ = "0.1.0"
