"""Managed marker utilities for synchronized documents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote


@dataclass(frozen=True)
class Checkpoint:
    """Parsed trailing checkpoint line of a document part."""

    category: str
    part: str
    revision: str
    snapshot: str = ""


class MarkerManager:
    """Applies docsync markers for idempotent block replacement."""

    BEGIN_FMT = "<!-- docsync:begin:{key} -->"
    END_FMT = "<!-- docsync:end:{key} -->"
    REMARK_BEGIN = "<!-- docsync:remark -->"
    REMARK_END = "<!-- docsync:end-remark -->"
    CHECKPOINT_FMT = "<!-- docsync:checkpoint category={category} part={part} revision={revision} snapshot={snapshot} -->"

    _CHECKPOINT_RE = re.compile(r"^<!-- docsync:checkpoint ((?:\w+=\S*\s*)+)-->\s*$")
    _BEGIN_TOKEN = "<!-- docsync:begin:"

    def wrap(self, key: str, body: str) -> str:
        """Wrap a block body with managed markers."""
        begin = self.BEGIN_FMT.format(key=key)
        end = self.END_FMT.format(key=key)
        return f"{begin}\n{body.strip()}\n{end}"

    def remark(self, text: str) -> str:
        return f"{self.REMARK_BEGIN}\n{text.strip()}\n{self.REMARK_END}"

    def blocks(self, markdown: str) -> List[Tuple[str, str]]:
        """Return ``(key, full block text including markers)`` in document order.

        A block whose end marker is missing is dropped; so is a second block
        with a key already seen.
        """
        found: List[Tuple[str, str]] = []
        seen = set()
        position = 0
        while True:
            start_index = markdown.find(self._BEGIN_TOKEN, position)
            if start_index == -1:
                break
            key_start = start_index + len(self._BEGIN_TOKEN)
            key_end = markdown.find(" -->", key_start)
            if key_end == -1:
                break
            key = markdown[key_start:key_end]
            end_token = self.END_FMT.format(key=key)
            end_index = markdown.find(end_token, key_end)
            if end_index == -1:
                position = key_end
                continue
            block_end = end_index + len(end_token)
            if key not in seen:
                seen.add(key)
                found.append((key, markdown[start_index:block_end]))
            position = block_end
        return found

    # ------------------------------------------------------------------
    # Checkpoint line

    def checkpoint_line(self, checkpoint: Checkpoint) -> str:
        return self.CHECKPOINT_FMT.format(
            category=checkpoint.category,
            part=checkpoint.part,
            # Revisions are caller supplied and may hold spaces or "-->".
            revision=quote(checkpoint.revision, safe=""),
            snapshot=checkpoint.snapshot,
        )

    def split_checkpoint(self, text: str) -> Tuple[str, Optional[Checkpoint]]:
        """Separate the body from its trailing checkpoint line.

        Only the last non-empty line counts; checkpoint-looking lines elsewhere
        are part of the body.
        """
        stripped = text.rstrip()
        line_start = stripped.rfind("\n") + 1
        last_line = stripped[line_start:]
        checkpoint = self.parse_checkpoint(last_line)
        if checkpoint is None:
            return text, None
        return stripped[:line_start].rstrip() + "\n", checkpoint

    def parse_checkpoint(self, line: str) -> Optional[Checkpoint]:
        match = self._CHECKPOINT_RE.match(line.strip())
        if not match:
            return None
        fields: Dict[str, str] = {}
        for token in match.group(1).split():
            name, _, value = token.partition("=")
            fields[name] = value
        if not fields.get("category") or not fields.get("part") or not fields.get("revision"):
            return None
        return Checkpoint(
            category=fields["category"],
            part=fields["part"],
            revision=unquote(fields["revision"]),
            snapshot=fields.get("snapshot", ""),
        )

    def with_checkpoint(self, body: str, checkpoint: Checkpoint) -> str:
        """Return ``body`` ending with exactly one checkpoint line."""
        base, _ = self.split_checkpoint(body)
        return f"{base.rstrip()}\n\n{self.checkpoint_line(checkpoint)}\n"


__all__ = ["Checkpoint", "MarkerManager"]
