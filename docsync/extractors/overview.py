"""Derived extractor summarising top-level modules of the repository."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Set

from ..models import make_entity
from .base import DerivedExtractor, ExtractionContext, ExtractionResult

ROOT_MODULE = "(root)"

_KIND_LABELS = (
    ("screen", "screens"),
    ("config-key", "config keys"),
    ("component", "components"),
    ("hook", "hooks"),
    ("utility", "utilities"),
    ("schema-model", "schema models"),
)


@dataclass
class _ModuleSummary:
    files: int = 0
    roles: Set[str] = field(default_factory=set)
    languages: Set[str] = field(default_factory=set)
    counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


class OverviewExtractor(DerivedExtractor):
    """Emits one ``module`` entity per top-level directory."""

    name = "overview"
    category = "overview"
    kinds = ("module",)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        summaries: Dict[str, _ModuleSummary] = defaultdict(_ModuleSummary)
        for meta in context.manifest.files:
            summary = summaries[module_of(meta.path)]
            summary.files += 1
            summary.roles.add(meta.role)
            if meta.language:
                summary.languages.add(meta.language)

        for entity in context.findings.all_entities():
            if not entity.location.path:
                continue
            module = module_of(entity.location.path)
            if module in summaries:
                summaries[module].counts[entity.kind] += 1

        result = ExtractionResult()
        for name in sorted(summaries, key=lambda item: (item == ROOT_MODULE, item)):
            summary = summaries[name]
            attributes: List[tuple] = [("files", str(summary.files))]
            if summary.languages:
                attributes.append(("languages", ", ".join(sorted(summary.languages))))
            attributes.append(("roles", ", ".join(sorted(summary.roles))))
            for kind, label in _KIND_LABELS:
                count = summary.counts.get(kind, 0)
                if count:
                    attributes.append((label, str(count)))
            path = "" if name == ROOT_MODULE else name
            result.entities.append(make_entity("module", name, attributes, path=path))
        return result


def module_of(path: str) -> str:
    return path.split("/", 1)[0] if "/" in path else ROOT_MODULE


__all__ = ["OverviewExtractor", "module_of"]
