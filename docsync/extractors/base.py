"""Base classes for extractor plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import ExtractionError
from ..git.revision import pattern_matches
from ..logging import get_logger
from ..models import Entity, FileMeta, Findings, RepoManifest

logger = get_logger("extractors")

# Where test code lives; shared by every extractor that cross-references tests.
TEST_PATTERNS: Tuple[str, ...] = (
    "tests/",
    "test/",
    "__tests__/",
    "*.test.*",
    "*.spec.*",
    "test_*.py",
    "*_test.py",
    "conftest.py",
)


@dataclass
class ExtractionContext:
    """Inputs available to an extractor for one category run."""

    manifest: RepoManifest
    findings: Findings = field(default_factory=Findings)

    @property
    def root(self) -> Path:
        return Path(self.manifest.root)

    def read_text(self, relative: str) -> str:
        try:
            return (self.root / relative).read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ExtractionError(relative, f"not valid UTF-8 ({exc.reason})") from exc
        except OSError as exc:
            raise ExtractionError(relative, str(exc)) from exc


@dataclass
class ExtractionResult:
    entities: List[Entity] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)


class Extractor(ABC):
    """Contract for extractors that turn source files into entities.

    Subclasses declare which files they read through ``patterns`` (and an
    optional ``languages`` filter) and implement :meth:`extract_file`.
    Extractors whose entities can be exercised by tests list
    ``test_patterns``; their results are cross-referenced with the
    assertions found there.
    """

    name: str = ""
    category: str = ""
    kinds: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    languages: Optional[frozenset] = None
    test_patterns: Tuple[str, ...] = ()

    def supports(self, manifest: RepoManifest) -> bool:
        """Return True when any manifest file is relevant to this extractor."""
        return any(self.matches(meta) for meta in manifest.files)

    def matches(self, meta: FileMeta) -> bool:
        if meta.role == "test" or is_test_path(meta.path):
            return False
        if self.languages is not None and meta.language not in self.languages:
            return False
        return any(pattern_matches(meta.path, pattern) for pattern in self.patterns)

    @property
    def watch_patterns(self) -> Tuple[str, ...]:
        """Paths whose modification can change this extractor's output."""
        return self.patterns + self.test_patterns

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        result = ExtractionResult()
        seen = set()
        for meta, text in self.sources(context, result.errors):
            try:
                found = list(self.extract_file(meta, text, context))
            except ExtractionError as exc:
                self._record_error(exc, result.errors)
                continue
            except (SyntaxError, ValueError) as exc:
                self._record_error(ExtractionError(meta.path, str(exc)), result.errors)
                continue
            for entity in found:
                if entity.key in seen:
                    logger.debug("Duplicate %s %s in %s ignored", entity.kind, entity.identity, meta.path)
                    continue
                seen.add(entity.key)
                result.entities.append(entity)
        if self.test_patterns and result.entities:
            from .tests import TestAssertionScanner

            result.entities = TestAssertionScanner().attach(result.entities, context, result.errors)
        return result

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        """Return entities defined in one source file."""
        raise NotImplementedError

    def sources(
        self, context: ExtractionContext, errors: List[ExtractionError]
    ) -> Iterator[Tuple[FileMeta, str]]:
        for meta in context.manifest.files:
            if not self.matches(meta):
                continue
            try:
                text = context.read_text(meta.path)
            except ExtractionError as exc:
                self._record_error(exc, errors)
                continue
            yield meta, text

    def _record_error(self, error: ExtractionError, errors: List[ExtractionError]) -> None:
        logger.warning("%s extractor skipped %s: %s", self.name, error.path, error.reason)
        errors.append(error)


class DerivedExtractor(Extractor):
    """Extractor computed from the manifest and earlier findings."""

    @abstractmethod
    def extract(self, context: ExtractionContext) -> ExtractionResult:
        """Produce entities for a derived category."""

    def supports(self, manifest: RepoManifest) -> bool:
        return True


def is_test_path(path: str) -> bool:
    return any(pattern_matches(path, pattern) for pattern in TEST_PATTERNS)


def unique_identity(identity: str, taken: Sequence[str] | set) -> str:
    """Append ``-2``, ``-3``... until ``identity`` is not in ``taken``."""
    if identity not in taken:
        return identity
    counter = 2
    while f"{identity}-{counter}" in taken:
        counter += 1
    return f"{identity}-{counter}"


__all__ = [
    "DerivedExtractor",
    "ExtractionContext",
    "ExtractionResult",
    "Extractor",
    "TEST_PATTERNS",
    "is_test_path",
    "unique_identity",
]
