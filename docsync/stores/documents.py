"""Filesystem access for physical document parts."""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..errors import UnreadablePart, WriteFailure
from ..logging import get_logger
from ..models import Entity
from ..postproc.markers import Checkpoint, MarkerManager
from .snapshot import decode_snapshot

logger = get_logger("documents")


@dataclass
class StoredPart:
    """A physical part as found on disk."""

    name: str
    path: Path
    body: str
    checkpoint: Optional[Checkpoint] = None
    entities: Optional[List[Entity]] = None
    blocks: List[tuple] = field(default_factory=list)

    @property
    def revision(self) -> Optional[str]:
        return self.checkpoint.revision if self.checkpoint else None


class DocumentStore:
    """Reads, writes and deletes ``<docs_dir>/<part>.md`` files."""

    SUFFIX = ".md"

    def __init__(self, docs_path: Path, markers: MarkerManager | None = None) -> None:
        self.docs_path = docs_path
        self.markers = markers or MarkerManager()

    def path_for(self, part: str) -> Path:
        return self.docs_path / f"{part}{self.SUFFIX}"

    def discover(self, logical: str) -> List[str]:
        """Return part names on disk for ``logical`` (``logical`` and ``logical-*``)."""
        if not self.docs_path.is_dir():
            return []
        pattern = re.compile(rf"^{re.escape(logical)}(?:-.+)?{re.escape(self.SUFFIX)}$")
        names = [path.name[: -len(self.SUFFIX)] for path in self.docs_path.iterdir() if pattern.match(path.name)]
        return sorted(names)

    def read(self, part: str) -> Optional[StoredPart]:
        """Return the stored part, or ``None`` when there is no such file.

        Raises:
            UnreadablePart: when the file exists but cannot be read or decoded.
        """
        path = self.path_for(part)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise UnreadablePart(part, str(exc)) from exc
        body, checkpoint = self.markers.split_checkpoint(text)
        entities = None
        if checkpoint is not None and checkpoint.snapshot:
            entities = decode_snapshot(checkpoint.snapshot)
            if entities is None:
                logger.warning("Checkpoint snapshot in %s is unreadable; treating its entities as unknown", path)
        return StoredPart(
            name=part,
            path=path,
            body=body,
            checkpoint=checkpoint,
            entities=entities,
            blocks=self.markers.blocks(body),
        )

    def read_text(self, part: str) -> Optional[str]:
        try:
            return self.path_for(part).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def write(self, part: str, text: str) -> Path:
        """Atomically replace ``part`` with ``text``.

        Raises:
            WriteFailure: when the file cannot be written; the previous
                content (and therefore its checkpoint) is left untouched.
        """
        path = self.path_for(part)
        temp_name: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=f".{part}.", suffix=".tmp", dir=str(path.parent))
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                handle.write(text)
            os.replace(temp_name, path)
            temp_name = None
        except OSError as exc:
            raise WriteFailure(part, str(exc)) from exc
        finally:
            if temp_name is not None:
                try:
                    os.unlink(temp_name)
                except OSError:
                    logger.debug("Could not remove temporary file %s", temp_name)
        return path

    def delete(self, part: str) -> None:
        try:
            self.path_for(part).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise WriteFailure(part, f"could not delete: {exc}") from exc


__all__ = ["DocumentStore", "StoredPart"]
