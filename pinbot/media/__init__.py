"""Media handling -- bounded image download and content-type sniffing."""

from .classify import FILETYPE_TO_MIME, SUPPORTED_FILETYPES, mime_type, sniff
from .fetch import CHUNK_SIZE, Fetcher

__all__ = [
    "CHUNK_SIZE",
    "FILETYPE_TO_MIME",
    "SUPPORTED_FILETYPES",
    "Fetcher",
    "mime_type",
    "sniff",
]
