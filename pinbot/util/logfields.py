"""Structured ``key=value`` fields on top of stdlib logging."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any


class FieldLogger(logging.LoggerAdapter):
    """A logger that carries bound fields and renders them after the message.

    ``log.with_fields(cmd="pin").info("uploaded")`` emits
    ``uploaded cmd=pin`` plus whatever fields *log* already carried.
    """

    def __init__(self, logger: logging.Logger, fields: Mapping[str, Any] | None = None) -> None:
        super().__init__(logger, dict(fields or {}))

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self.extra or {})

    def with_fields(self, **fields: Any) -> FieldLogger:
        return FieldLogger(self.logger, {**self.fields, **fields})

    def render(self, msg: Any, *, escape: bool = False) -> str:
        if not self.extra:
            return str(msg)
        rendered = " ".join(f"{k}={v}" for k, v in self.extra.items())
        if escape:
            # field values must survive the %-formatting of *args
            rendered = rendered.replace("%", "%%")
        return f"{msg} {rendered}"

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(level):
            self.logger.log(level, self.render(msg, escape=bool(args)), *args, **kwargs)


def field_logger(name: str, **fields: Any) -> FieldLogger:
    return FieldLogger(logging.getLogger(name), fields)
