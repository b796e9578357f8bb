"""Shared pytest fixtures for pinbot tests."""

from __future__ import annotations

import io
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from pinbot.messaging.context import DispatchContext
from pinbot.messaging.events import Identity, Message
from pinbot.storage.images import ImageStore
from pinbot.util.logfields import FieldLogger


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in list(os.environ):
        if key.startswith(("PINBOT_", "SLACK_")):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    dotenv = tmp_path / ".env"
    monkeypatch.setenv("DOTENV_PATH", str(dotenv))
    return dotenv


@pytest.fixture()
def dotenv_path(_isolate_env: Path) -> Path:
    return _isolate_env


@pytest.fixture()
def make_ctx() -> Callable[..., DispatchContext]:
    """Build a DispatchContext; call it from inside a running event loop."""

    def _make(timeout: float = 5.0) -> DispatchContext:
        return DispatchContext.start(timeout, FieldLogger(logging.getLogger("pinbot.tests")))

    return _make


# ---------------------------------------------------------------------------
# images
# ---------------------------------------------------------------------------


def image_bytes(fmt: str, color: str = "red", size: tuple[int, int] = (4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture()
def png_bytes() -> bytes:
    return image_bytes("PNG")


@pytest.fixture()
def gif_bytes() -> bytes:
    return image_bytes("GIF")


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return image_bytes("JPEG")


@pytest.fixture()
def bmp_bytes() -> bytes:
    return image_bytes("BMP")


# ---------------------------------------------------------------------------
# S3
# ---------------------------------------------------------------------------


class FakeS3:
    """In-memory stand-in for the boto3 S3 client calls ImageStore makes."""

    def __init__(self, page_size: int = 1000) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.page_size = page_size
        self.put_calls: list[dict[str, Any]] = []
        self.list_calls: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None

    def put_object(self, **kwargs: Any) -> dict[str, Any]:
        self.put_calls.append(kwargs)
        if self.fail_with is not None:
            raise self.fail_with
        key = kwargs["Key"]
        if kwargs.get("IfNoneMatch") == "*" and key in self.objects:
            raise ClientError(
                {"Error": {"Code": "PreconditionFailed", "Message": "At least one of the pre-conditions you specified did not hold"},
                 "ResponseMetadata": {"HTTPStatusCode": 412}},
                "PutObject",
            )
        self.objects[key] = kwargs
        return {"ETag": '"etag"'}

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        prefix = kwargs.get("Prefix", "")
        delimiter = kwargs.get("Delimiter")
        keys = sorted(
            k for k in self.objects
            if k.startswith(prefix) and not (delimiter and delimiter in k[len(prefix):])
        )
        self.list_calls.append(kwargs)
        start = int(kwargs.get("ContinuationToken") or 0)
        page = keys[start:start + self.page_size]
        resp: dict[str, Any] = {"KeyCount": len(page), "IsTruncated": start + self.page_size < len(keys)}
        if page:
            resp["Contents"] = [{"Key": k, "Size": len(self.objects[k]["Body"])} for k in page]
        if resp["IsTruncated"]:
            resp["NextContinuationToken"] = str(start + self.page_size)
        return resp


@pytest.fixture()
def make_s3() -> type[FakeS3]:
    return FakeS3


@pytest.fixture()
def s3() -> FakeS3:
    return FakeS3()


@pytest.fixture()
def store(s3: FakeS3) -> ImageStore:
    return ImageStore(s3, bucket="garf", prefix="lasagna", domain="s3.amazonaws.com")


# ---------------------------------------------------------------------------
# transport
# ---------------------------------------------------------------------------


@pytest.fixture()
def identity() -> Identity:
    return Identity(name="pinbot", user_id="UBOT", bot_id="BBOT")


@pytest.fixture()
def transport(identity: Identity) -> AsyncMock:
    t = AsyncMock()
    t.post_message = AsyncMock(return_value=None)
    t.auth_test = AsyncMock(return_value=identity)
    return t


@pytest.fixture()
def make_message() -> Callable[..., Message]:
    def _make(text: str, **kwargs: Any) -> Message:
        kwargs.setdefault("channel", "C123")
        kwargs.setdefault("user", "U123")
        kwargs.setdefault("username", "jon")
        return Message(text=text, **kwargs)

    return _make
