"""Content-addressed image store on S3.

The store is append-only: images are written once under
``<prefix>/<name>/<id>.<ext>`` and never modified or deleted here.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import StorageError, ValidationError
from ..media.classify import SUPPORTED_FILETYPES, mime_type
from ..messaging.context import DispatchContext
from ..util.async_helpers import run_sync_until
from .keys import ImageID, decode_key, encode_key, name_prefix, public_url

# S3 answers a failed If-None-Match with one of these
_EXISTS_CODES = frozenset({"PreconditionFailed", "412"})


@dataclass(frozen=True)
class Img:
    id: ImageID
    name: str
    filetype: str
    url: str
    metadata: Mapping[str, str] = field(default_factory=dict, hash=False)
    # False when the identical image was already stored under this name
    created: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


class ImageStore:
    """Writes and lists pinned images in one bucket under one key prefix.

    *client* is a boto3 S3 client. Its calls block, so each one runs on the
    default executor under the caller's deadline.
    """

    def __init__(self, client: Any, *, bucket: str, prefix: str, domain: str) -> None:
        self._s3 = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.domain = domain

    def _img(self, name: str, filetype: str, image_id: ImageID, metadata: Mapping[str, str], *, created: bool = True) -> Img:
        key = encode_key(self.prefix, name, filetype, image_id)
        return Img(
            id=image_id,
            name=name,
            filetype=filetype,
            url=public_url(self.bucket, key, self.domain),
            metadata=metadata,
            created=created,
        )

    async def add(
        self,
        ctx: DispatchContext,
        name: str,
        filetype: str,
        data: bytes,
        metadata: Mapping[str, str] | None = None,
    ) -> Img:
        """Store *data* under *name* and return the resulting :class:`Img`.

        The write is conditional on the key not existing. Since the key
        embeds the content id, a refused write means this exact image is
        already pinned under *name*; the returned image then has
        ``created=False``.
        """
        if filetype not in SUPPORTED_FILETYPES:
            raise ValidationError(f"unsupported filetype {filetype!r}")

        image_id = ImageID.for_content(data)
        key = encode_key(self.prefix, name, filetype, image_id)
        meta = {k: _ascii(v) for k, v in (metadata or {}).items()}
        log = ctx.log.with_fields(key=key)

        try:
            await run_sync_until(
                ctx.deadline,
                self._s3.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type(filetype),
                Metadata=meta,
                IfNoneMatch="*",
            )
        except ClientError as exc:
            if _error_code(exc) in _EXISTS_CODES:
                log.info("image already stored")
                return self._img(name, filetype, image_id, metadata or {}, created=False)
            raise StorageError(f"put {key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"put {key}: {exc}") from exc

        log.debug("stored %d bytes", len(data))
        return self._img(name, filetype, image_id, metadata or {})

    async def list(self, ctx: DispatchContext, name: str) -> list[Img]:
        """Every image pinned under *name*, in key order. Empty is not an error."""
        prefix = name_prefix(self.prefix, name)
        images: list[Img] = []
        for key in await self._keys(ctx, prefix):
            try:
                image_id, filetype = decode_key(key)
            except ValidationError as exc:
                ctx.log.with_fields(key=key).warning("skipping undecodable key: %s", exc)
                continue
            images.append(self._img(name, filetype, image_id, {}))
        return images

    async def _keys(self, ctx: DispatchContext, prefix: str) -> list[str]:
        keys: list[str] = []
        # the delimiter keeps keys nested deeper than one segment out of the listing
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix, "Delimiter": "/"}
        while True:
            try:
                page = await run_sync_until(ctx.deadline, self._s3.list_objects_v2, **kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise StorageError(f"list {prefix}: {exc}") from exc
            keys.extend(obj["Key"] for obj in page.get("Contents", ()))
            if not page.get("IsTruncated"):
                return keys
            kwargs["ContinuationToken"] = page["NextContinuationToken"]


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {})
    return str(error.get("Code") or exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", ""))


def _ascii(value: str) -> str:
    # S3 user metadata travels as HTTP headers
    return quote(value, safe=" !\"#$&'()*+,-./:;<=>?@[\\]^_`{|}~")
