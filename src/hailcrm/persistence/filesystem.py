"""File-based key/value persistence for small JSON documents."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from ..config import settings

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class FileStorage:
    """Thin wrapper around the data root storing one JSON file per logical key."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.store_root = self.root / "store"
        self.store_root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.store_root / f"{_SAFE_KEY.sub('_', key)}.json"

    def read_json(self, key: str, default: Any = None) -> Any:
        """Return the stored document, or ``default`` when missing or unreadable."""
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable document '{key}' at {path}: {exc}")
            return default

    def write_json(self, key: str, data: Any, *, indent: int = 2) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent, default=str)
        os.replace(tmp_path, path)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)
