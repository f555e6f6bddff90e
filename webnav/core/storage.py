"""Snapshot persistence surfaces for the entry store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from .types import NavigationEntry

logger = logging.getLogger(__name__)

Snapshot = Tuple[List[NavigationEntry], int]


class SnapshotStorage(Protocol):
    """Key-value surface the engine saves its snapshot into."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


@dataclass
class MemoryStorage:
    items: Dict[str, str] = field(default_factory=dict)

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass
class JsonFileStorage:
    """A JSON object on disk used as a string key-value store."""

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        try:
            data = self._read()
        except (ValueError, RecursionError) as exc:
            logger.warning("Overwriting unreadable storage file %s: %s", self.path, exc)
            data = {}
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> Dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


def encode_snapshot(entries: Sequence[NavigationEntry], current_index: int) -> str:
    return json.dumps(
        {
            "entries": [entry.to_dict() for entry in entries],
            "current_index": current_index,
        }
    )


def decode_snapshot(raw: str) -> Optional[Snapshot]:
    """Parse a stored snapshot, returning ``None`` when it is not usable."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None
    raw_entries = data.get("entries")
    index = data.get("current_index")
    if not isinstance(raw_entries, list):
        return None
    if isinstance(index, bool) or not isinstance(index, int):
        return None
    try:
        entries = [NavigationEntry.from_dict(item) for item in raw_entries]
    except (ValueError, OverflowError):
        return None
    if not entries:
        return ([], -1) if index == -1 else None
    if not 0 <= index < len(entries):
        return None
    return entries, index


def load_snapshot(storage: SnapshotStorage, key: str) -> Optional[Snapshot]:
    try:
        raw = storage.get_item(key)
    except Exception as exc:
        logger.warning("Failed to read navigation snapshot %r: %s", key, exc)
        return None
    if raw is None:
        return None
    snapshot = decode_snapshot(raw)
    if snapshot is None:
        logger.warning("Ignoring malformed navigation snapshot under %r", key)
    return snapshot


def save_snapshot(
    storage: SnapshotStorage,
    key: str,
    entries: Sequence[NavigationEntry],
    current_index: int,
) -> bool:
    try:
        storage.set_item(key, encode_snapshot(entries, current_index))
    except Exception as exc:
        logger.warning("Failed to save navigation snapshot %r: %s", key, exc)
        return False
    return True
