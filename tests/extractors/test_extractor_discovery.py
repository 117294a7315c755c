"""Tests for extractor discovery utilities."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from docsync.extractors import (
    ExtractionContext,
    ExtractionResult,
    Extractor,
    discover_extractors,
    extractors_by_category,
)
from docsync.extractors.comments import KnownBugExtractor, TodoExtractor
from docsync.extractors.screens import ScreenExtractor


class DummyExtractor(Extractor):
    """Test extractor used for plugin discovery validation."""

    name = "dummy"
    category = "utilities"
    kinds = ("utility",)
    patterns = ("scripts/",)

    def extract(self, context: ExtractionContext) -> ExtractionResult:  # pragma: no cover - unused
        return ExtractionResult()


def test_discover_extractors_returns_builtin_extractors() -> None:
    extractors = discover_extractors()
    names = [extractor.name for extractor in extractors]
    assert names[:9] == [
        "screens",
        "config_keys",
        "components",
        "hooks",
        "utilities",
        "schema",
        "overview",
        "known_bugs",
        "todo",
    ]


def test_discover_extractors_respects_enabled_filter() -> None:
    extractors = discover_extractors(["Screens"])
    assert len(extractors) == 1
    assert isinstance(extractors[0], ScreenExtractor)


def test_discover_extractors_loads_entry_points(monkeypatch) -> None:
    dummy_entry = SimpleNamespace(name="dummy", load=lambda: DummyExtractor)

    class DummyEntryPoints(list):
        def select(self, **kwargs):
            if kwargs.get("group") == "docsync.extractors":
                return self
            return []

    monkeypatch.setattr(
        "docsync.extractors.metadata.entry_points",
        lambda: DummyEntryPoints([dummy_entry]),
        raising=False,
    )

    extractors = discover_extractors(["dummy"])
    assert len(extractors) == 1
    assert isinstance(extractors[0], DummyExtractor)


def test_entry_point_load_failure_is_reported(monkeypatch) -> None:
    def _broken():
        raise ImportError("missing module")

    class DummyEntryPoints(list):
        def select(self, **kwargs):
            return self

    monkeypatch.setattr(
        "docsync.extractors.metadata.entry_points",
        lambda: DummyEntryPoints([SimpleNamespace(name="broken", load=_broken)]),
        raising=False,
    )

    with pytest.raises(RuntimeError, match="broken"):
        discover_extractors()


def test_discover_extractors_raises_for_unknown_name() -> None:
    with pytest.raises(ValueError):
        discover_extractors(["does-not-exist"])


def test_extractors_by_category_follows_category_order() -> None:
    grouped = extractors_by_category([TodoExtractor(), KnownBugExtractor(), DummyExtractor(), ScreenExtractor()])

    assert list(grouped) == ["screens", "utilities", "known_bugs", "todo"]
    assert isinstance(grouped["utilities"][0], DummyExtractor)
