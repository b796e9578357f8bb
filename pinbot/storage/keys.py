"""Content identifiers and the storage-key codec.

A key is ``<prefix>/<name>/<id>.<ext>``, where *name* is always a single
path segment. The filetype <-> extension
mapping is a bijection over the supported filetypes, so
``decode_key(encode_key(p, n, ft, id)) == (id, ft)`` for every supported
filetype.
"""

from __future__ import annotations

import hashlib
import posixpath
import re
from dataclasses import dataclass

from ..errors import ValidationError
from ..media.classify import SUPPORTED_FILETYPES

FILETYPE_TO_EXTENSION: dict[str, str] = {
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
}
EXTENSION_TO_FILETYPE: dict[str, str] = {ext: ft for ft, ext in FILETYPE_TO_EXTENSION.items()}

if len(EXTENSION_TO_FILETYPE) != len(FILETYPE_TO_EXTENSION) or set(FILETYPE_TO_EXTENSION) != SUPPORTED_FILETYPES:
    raise RuntimeError("filetype/extension mapping must be a bijection over the supported filetypes")

VALID_PIN_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]{0,63}")
INVALID_PIN_NAME_RESPONSE = (
    f"you made an opps! that's not a valid pin name. names look like {VALID_PIN_NAME_RE.pattern}"
)

ID_BYTES = 16
_ID_RE = re.compile(rf"[0-9a-f]{{{ID_BYTES * 2}}}")


@dataclass(frozen=True, slots=True)
class ImageID:
    """A 128-bit content identifier rendered as 32 lowercase hex characters."""

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != ID_BYTES:
            raise ValueError(f"ImageID needs {ID_BYTES} bytes, got {len(self.digest)}")

    @classmethod
    def for_content(cls, data: bytes) -> ImageID:
        """Same bytes, same id -- independent of name or filetype label."""
        return cls(hashlib.blake2b(data, digest_size=ID_BYTES).digest())

    @classmethod
    def parse(cls, text: str) -> ImageID:
        if not _ID_RE.fullmatch(text):
            raise ValidationError(f"malformed image id {text!r}")
        return cls(bytes.fromhex(text))

    def __str__(self) -> str:
        return self.digest.hex()


def extension_for(filetype: str) -> str:
    try:
        return FILETYPE_TO_EXTENSION[filetype]
    except KeyError:
        raise ValidationError(f"unsupported filetype {filetype!r}") from None


def filetype_for(extension: str) -> str:
    try:
        return EXTENSION_TO_FILETYPE[extension]
    except KeyError:
        raise ValidationError(f"unsupported extension {extension!r}") from None


def check_pin_name(name: str) -> str:
    """Return *name* if it is a single key segment, else raise :class:`ValidationError`."""
    if not VALID_PIN_NAME_RE.fullmatch(name):
        raise ValidationError(f"invalid pin name {name!r}", user_message=INVALID_PIN_NAME_RESPONSE)
    return name


def name_prefix(prefix: str, name: str) -> str:
    """The listing prefix for every image pinned under *name*."""
    check_pin_name(name)
    return f"{prefix.strip('/')}/{name}/"


def encode_key(prefix: str, name: str, filetype: str, image_id: ImageID) -> str:
    return f"{name_prefix(prefix, name)}{image_id}.{extension_for(filetype)}"


def decode_key(key: str) -> tuple[ImageID, str]:
    """Recover ``(id, filetype)`` from a key's final path segment."""
    stem, dot, ext = posixpath.basename(key).rpartition(".")
    if not dot:
        raise ValidationError(f"key has no extension: {key!r}")
    filetype = filetype_for(ext)
    return ImageID.parse(stem), filetype


def public_url(bucket: str, key: str, domain: str) -> str:
    return f"https://{bucket}.{domain}/{key}"
