"""Extractor plugin implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List, Sequence, Set

from ..models import category_sort_key
from .base import DerivedExtractor, ExtractionContext, ExtractionResult, Extractor
from .comments import KnownBugExtractor, TodoExtractor
from .components import ComponentExtractor, HookExtractor
from .config_keys import ConfigKeyExtractor
from .overview import OverviewExtractor
from .schema import SchemaExtractor
from .screens import ScreenExtractor
from .utilities import UtilityExtractor

_ENTRY_POINT_GROUP = "docsync.extractors"

_BUILTIN_FACTORIES: Dict[str, Callable[[], Extractor]] = {
    "screens": ScreenExtractor,
    "config_keys": ConfigKeyExtractor,
    "components": ComponentExtractor,
    "hooks": HookExtractor,
    "utilities": UtilityExtractor,
    "schema": SchemaExtractor,
    "overview": OverviewExtractor,
    "known_bugs": KnownBugExtractor,
    "todo": TodoExtractor,
}


def discover_extractors(enabled: Sequence[str] | None = None) -> List[Extractor]:
    """Return instantiated extractors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled:
        enabled_set = {name.lower() for name in enabled}

    extractors: List[Extractor] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Extractor]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Extractor):
            raise TypeError(f"Extractor factory for '{name}' did not return an Extractor instance")
        extractors.append(instance)
        seen.add(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load extractor entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Extractor:
            return _coerce_extractor(obj)

        _add(name, _factory)

    if enabled_set:
        missing = sorted(enabled_set - seen)
        if missing:
            raise ValueError(f"Unknown extractors requested: {', '.join(missing)}")

    return extractors


def extractors_by_category(extractors: Iterable[Extractor]) -> Dict[str, List[Extractor]]:
    """Group extractors by the category they feed, in fixed category order."""
    grouped: Dict[str, List[Extractor]] = {}
    for extractor in sorted(extractors, key=lambda item: category_sort_key(item.category)):
        grouped.setdefault(extractor.category, []).append(extractor)
    return grouped


def _coerce_extractor(obj: object) -> Extractor:
    if isinstance(obj, Extractor):
        return obj
    if isinstance(obj, type) and issubclass(obj, Extractor):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Extractor):
            return instance
    raise TypeError("Extractor entry point must be an Extractor subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    entry_points = metadata.entry_points()
    if hasattr(entry_points, "select"):
        return entry_points.select(group=_ENTRY_POINT_GROUP)  # type: ignore[return-value]
    return entry_points.get(_ENTRY_POINT_GROUP, [])  # type: ignore[return-value]


__all__ = [
    "DerivedExtractor",
    "ExtractionContext",
    "ExtractionResult",
    "Extractor",
    "discover_extractors",
    "extractors_by_category",
]
