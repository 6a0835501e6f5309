"""
File-backed key/value store for client-side state.

Behaves like a browser's localStorage: string keys map to string values and
the whole mapping is persisted as one JSON document, rewritten atomically on
every change so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from .core.constants import DEFAULT_CACHE_FILENAME
from .core.logger import logger

load_dotenv(Path(__file__).resolve().parent / ".env", override=False)


class LocalCacheError(RuntimeError):
    """Raised when the cache file cannot be written."""


def default_cache_path() -> Path:
    raw = (os.getenv("RIDEACCESS_CACHE_PATH") or "").strip()
    if raw:
        return Path(raw).expanduser().resolve()
    return (Path.home() / ".rideaccess" / DEFAULT_CACHE_FILENAME).resolve()


class LocalCache:
    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path).expanduser().resolve() if path else default_cache_path()

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = str(value)
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)

    def clear(self) -> None:
        self._write_all({})

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Local cache %s unreadable: %s", self.path, exc)
            return {}
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            logger.warning("Local cache %s is not valid JSON: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local cache %s does not hold an object; ignoring it.", self.path)
            return {}
        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _write_all(self, items: Dict[str, str]) -> None:
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise LocalCacheError(f"Unable to write local cache {self.path}: {exc}") from exc
