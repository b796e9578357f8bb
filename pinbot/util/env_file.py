"""Read-only ``.env`` file parser."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path


class EnvFile:
    """Reads a simple ``KEY=VALUE`` file.

    Blank lines and ``#`` comments are skipped, an optional ``export``
    prefix is accepted, and surrounding quotes are stripped from values.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self, key: str) -> str:
        """Return the value for *key*, or ``""`` if absent."""
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        result: dict[str, str] = {}
        for line in self.path.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            result[key.strip()] = value.strip().strip('"').strip("'")
        return result

    def overlay(self, environ: Mapping[str, str]) -> dict[str, str]:
        """Merge file values under *environ*; non-empty process values win."""
        merged = self.read_all()
        merged.update({k: v for k, v in environ.items() if v})
        return merged
