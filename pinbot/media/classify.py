"""Image type detection and the filetype -> MIME registry."""

from __future__ import annotations

import io

from PIL import Image, UnidentifiedImageError

from ..errors import ImageTooLarge, UnsupportedType

FILETYPE_TO_MIME: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

SUPPORTED_FILETYPES: frozenset[str] = frozenset(FILETYPE_TO_MIME)

# Pillow format names for the types above
_PIL_FORMATS: dict[str, str] = {
    "JPEG": "jpeg",
    "MPO": "jpeg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
}


def mime_type(filetype: str) -> str:
    """Return the MIME type for a supported *filetype*."""
    return FILETYPE_TO_MIME[filetype]


def sniff(data: bytes) -> str:
    """Identify *data* by its content and return the filetype.

    Only the header is parsed. Anything Pillow cannot identify, or
    identifies as a format outside :data:`SUPPORTED_FILETYPES`, raises
    :class:`UnsupportedType`. A header declaring more pixels than Pillow's
    bomb limit raises :class:`ImageTooLarge`.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            detected = img.format
    except Image.DecompressionBombError as exc:
        raise ImageTooLarge(str(exc)) from None
    except (UnidentifiedImageError, OSError, ValueError):
        raise UnsupportedType(None) from None

    filetype = _PIL_FORMATS.get(detected or "")
    if filetype is None:
        raise UnsupportedType(detected.lower() if detected else None)
    return filetype
