"""Persisted map of source id -> last processed item id."""

import json
import logging
import os
from pathlib import Path

from clipcast.errors import ValidationError

logger = logging.getLogger(__name__)


class WatchState:
    """Last-seen item per source, written through to a JSON file.

    ``commit`` only updates the in-memory value after the file has been
    flushed and atomically replaced, so a crash can at most cause the most
    recent item to be processed again.
    """

    def __init__(self, path: Path, items: dict[str, str] | None = None):
        self.path = path
        self._items: dict[str, str] = dict(items or {})

    @classmethod
    def load(cls, path: str | Path) -> "WatchState":
        path = Path(path)
        if not path.exists():
            return cls(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValidationError(f"Watch state in {path} must be a JSON object")
        logger.info("Loaded watch state for %d sources from %s", len(data), path)
        return cls(path, {str(k): str(v) for k, v in data.items()})

    def get(self, source_id: str) -> str | None:
        return self._items.get(source_id)

    def commit(self, source_id: str, item_id: str) -> None:
        items = dict(self._items)
        items[source_id] = item_id
        self._write(items)
        self._items = items

    def as_dict(self) -> dict[str, str]:
        return dict(self._items)

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(items, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)
