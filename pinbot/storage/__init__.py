"""Content-addressed image storage and its key codec."""

from .images import ImageStore, Img
from .keys import (
    EXTENSION_TO_FILETYPE,
    FILETYPE_TO_EXTENSION,
    ImageID,
    decode_key,
    encode_key,
    public_url,
)

__all__ = [
    "EXTENSION_TO_FILETYPE",
    "FILETYPE_TO_EXTENSION",
    "ImageID",
    "ImageStore",
    "Img",
    "decode_key",
    "encode_key",
    "public_url",
]
