"""
Volume persistence.

The controller only needs load()/save(); JsonFileVolumeStore keeps the value
in a small JSON document under the "radioVolume" key.
"""

from __future__ import annotations

import json
import math
import os
import time
from pathlib import Path
from typing import Protocol

from constants import VOLUME_STORAGE_KEY
from observability.logger import log_event


class VolumeStore(Protocol):
    def load(self) -> float | None: ...

    def save(self, volume: float) -> None: ...


class MemoryVolumeStore:
    """Process-local store. Used when no path is configured and in tests."""

    def __init__(self, volume: float | None = None) -> None:
        self.volume = volume

    def load(self) -> float | None:
        return self.volume

    def save(self, volume: float) -> None:
        self.volume = volume


class JsonFileVolumeStore:
    def __init__(self, path: str | Path, key: str = VOLUME_STORAGE_KEY) -> None:
        self._path = Path(path)
        self._key = key

    def load(self) -> float | None:
        """Stored volume, or None when missing/unreadable/not a finite number."""
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "VOLUME_STORE_READ_FAILED",
                "path": str(self._path),
                "message": str(exc),
            })
            return None

        value = data.get(self._key) if isinstance(data, dict) else None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value):
            return None
        return float(value)

    def save(self, volume: float) -> None:
        # Write-then-rename so a crash never leaves a torn file
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            if self._path.parent and not self._path.parent.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps({self._key: volume}), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as exc:
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "VOLUME_STORE_WRITE_FAILED",
                "path": str(self._path),
                "message": str(exc),
            })
