"""Derived extractors for known bugs and pending work."""

from __future__ import annotations

import hashlib
import re
from typing import Iterator, List, Set, Tuple

from ..models import CATEGORY_ORDER, Entity, FileMeta, make_entity
from .base import DerivedExtractor, ExtractionContext, ExtractionResult, unique_identity

_CODE_LANGUAGES = frozenset({"JavaScript", "TypeScript", "Python", "SQL", "Prisma"})
_MARKER = re.compile(
    r"(?:^|\s)(?://+|#+|/\*+|\*+|--)\s*(TODO|FIXME|BUG|XXX|HACK)\b\s*(?:\([^)]*\))?\s*[:\-]?\s*(.*)$"
)

BUG_TAGS = frozenset({"FIXME", "BUG", "XXX"})
TASK_TAGS = frozenset({"TODO", "HACK"})


def iter_marker_comments(meta: FileMeta, text: str) -> Iterator[Tuple[str, str, int]]:
    """Yield ``(tag, text, line)`` for every marker comment in a file."""
    for number, raw in enumerate(text.splitlines(), start=1):
        match = _MARKER.search(raw)
        if not match:
            continue
        tag, body = match.groups()
        body = body.strip()
        if body.endswith("*/"):
            body = body[:-2].rstrip()
        yield tag, body, number


def _comment_identity(path: str, tag: str, body: str, taken: Set[str]) -> str:
    digest = hashlib.sha1(f"{tag}:{body}".encode("utf-8")).hexdigest()[:8]
    return unique_identity(f"{path}#{digest}", taken)


class _CommentExtractor(DerivedExtractor):
    tags: frozenset = frozenset()
    kind = ""

    def comment_entities(self, context: ExtractionContext, result: ExtractionResult) -> List[Entity]:
        entities: List[Entity] = []
        taken: Set[str] = set()
        for meta, text in self.sources(context, result.errors):
            for tag, body, line in iter_marker_comments(meta, text):
                if tag not in self.tags:
                    continue
                identity = _comment_identity(meta.path, tag, body, taken)
                taken.add(identity)
                entities.append(
                    make_entity(
                        self.kind,
                        identity,
                        [("tag", tag), ("text", body or "(no description)")],
                        path=meta.path,
                        line=line,
                    )
                )
        return entities

    def matches(self, meta: FileMeta) -> bool:
        return meta.language in _CODE_LANGUAGES


class KnownBugExtractor(_CommentExtractor):
    """Known bugs: unresolved test discrepancies plus FIXME/BUG/XXX comments."""

    name = "known_bugs"
    category = "known_bugs"
    kinds = ("bug",)
    kind = "bug"
    tags = BUG_TAGS

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        result = ExtractionResult()
        taken: Set[str] = set()
        for category in CATEGORY_ORDER:
            for discrepancy in context.findings.discrepancies.get(category, []):
                test_path = discrepancy.test_location.rsplit(":", 1)[0]
                identity = f"{discrepancy.kind}:{discrepancy.identity}.{discrepancy.attribute} ({test_path})"
                if identity in taken:
                    continue
                taken.add(identity)
                result.entities.append(
                    make_entity(
                        "bug",
                        identity,
                        [
                            ("source", "test discrepancy"),
                            ("category", category),
                            ("test", discrepancy.test_location),
                            ("text", discrepancy.description),
                        ],
                        path=test_path,
                    )
                )
        result.entities.extend(self.comment_entities(context, result))
        return result


class TodoExtractor(_CommentExtractor):
    """Pending work recorded as TODO/HACK comments."""

    name = "todo"
    category = "todo"
    kinds = ("task",)
    kind = "task"
    tags = TASK_TAGS

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        result = ExtractionResult()
        result.entities.extend(self.comment_entities(context, result))
        return result


__all__ = ["BUG_TAGS", "KnownBugExtractor", "TASK_TAGS", "TodoExtractor", "iter_marker_comments"]
