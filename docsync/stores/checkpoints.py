"""Persistent index of per-part checkpoint revisions."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger

_INDEX_VERSION = 1

logger = get_logger("checkpoints")


class CheckpointStore:
    """Maps each physical document part to the last revision it fully reflects.

    The trailing marker inside every part is the source of truth; this index
    is a fast lookup that the synchronizer repairs whenever it disagrees with
    a marker. Every ``set``/``remove`` is persisted straight away so a crash
    can at worst leave the index one part behind the documents.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, object]] = {}
        if self._path is not None:
            self._load(self._path)

    def get(self, part: str) -> Optional[str]:
        entry = self._entries.get(part)
        if not entry:
            return None
        revision = entry.get("revision")
        return revision if isinstance(revision, str) else None

    def set(self, part: str, revision: str, *, category: str, logical: str, index: int) -> None:
        self._entries[part] = {
            "category": category,
            "logical": logical,
            "index": index,
            "revision": revision,
            "updated_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        self.persist()

    def remove(self, part: str) -> None:
        if self._entries.pop(part, None) is not None:
            self.persist()

    def list_parts(self, category: str) -> List[str]:
        """Return the parts recorded for ``category`` ordered by part index."""
        parts = [
            (entry.get("index", 0), part)
            for part, entry in self._entries.items()
            if entry.get("category") == category
        ]
        return [part for _, part in sorted(parts, key=lambda item: (_as_index(item[0]), item[1]))]

    def entry(self, part: str) -> Optional[Dict[str, object]]:
        entry = self._entries.get(part)
        return dict(entry) if entry else None

    def persist(self) -> None:
        if self._path is None:
            return
        payload = {"version": _INDEX_VERSION, "parts": self._entries}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(f".{self._path.name}.tmp")
        temp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        temp_path.replace(self._path)

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable checkpoint index %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _INDEX_VERSION:
            return
        parts = data.get("parts")
        if not isinstance(parts, dict):
            return
        valid: Dict[str, Dict[str, object]] = {}
        for part, raw in parts.items():
            if not isinstance(part, str) or not isinstance(raw, dict):
                continue
            if not isinstance(raw.get("revision"), str) or not isinstance(raw.get("category"), str):
                continue
            valid[part] = raw
        self._entries = valid


def _as_index(value: object) -> int:
    return value if isinstance(value, int) else 0


__all__ = ["CheckpointStore"]
