"""Flat key-value persistence (whole-value get/set)."""
from __future__ import annotations

import re

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from expressface.utils.log import get_logger

logger = get_logger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored blob, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, blob: str) -> None:
        """Replace the whole value under `key`."""


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, blob: str) -> None:
        self._data[key] = str(blob)


class FileKeyValueStore(KeyValueStore):
    """One UTF-8 file per key under `root`, written whole on every set."""

    def __init__(self, root):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(str(key)):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        fp = self._path(key)
        if not fp.exists():
            return None
        return fp.read_text(encoding="utf-8")

    def set(self, key: str, blob: str) -> None:
        fp = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = fp.with_suffix(".tmp")
        tmp.write_text(str(blob), encoding="utf-8")
        tmp.replace(fp)
        logger.debug(f"Wrote {len(blob)} bytes -> {fp}")
