"""Shared utilities."""

from .async_helpers import run_sync, run_sync_until
from .env_file import EnvFile
from .logfields import FieldLogger, field_logger

__all__ = [
    "EnvFile",
    "FieldLogger",
    "field_logger",
    "run_sync",
    "run_sync_until",
]
