"""Configuration loading for docsync (.docsync.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .models import CATEGORY_ORDER, category_sort_key

CONFIG_FILENAME = ".docsync.yml"
DEFAULT_DOCS_DIR = "docs/knowledge"
PARTITION_STRATEGIES = ("index", "group")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class BudgetConfig:
    """Size budget (estimated tokens) per logical document."""

    default: Optional[int] = None
    overrides: Dict[str, int] = field(default_factory=dict)

    def for_category(self, category: str) -> Optional[int]:
        if category in self.overrides:
            return self.overrides[category]
        return self.default


@dataclass
class ExtractorConfig:
    """Extractor enablement and exclusions."""

    enabled: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class DocSyncConfig:
    """Represents the high-level settings defined in .docsync.yml."""

    root: Path
    docs_dir: str = DEFAULT_DOCS_DIR
    categories: List[str] = field(default_factory=lambda: list(CATEGORY_ORDER))
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    partition: str = "index"
    extractors: ExtractorConfig = field(default_factory=ExtractorConfig)
    exclude_paths: List[str] = field(default_factory=list)

    @property
    def docs_path(self) -> Path:
        return self.root / self.docs_dir


def load_config(config_path: Path) -> DocSyncConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DocSyncConfig(root=root)

    text = config_file.read_text(encoding="utf-8")
    data = _read_config(config_file, text)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = DocSyncConfig(root=root)

    docs_dir = _as_str(data.get("docs_dir"))
    if docs_dir:
        config.docs_dir = docs_dir.strip("/") or DEFAULT_DOCS_DIR

    categories = _as_str_list(data.get("categories"))
    if categories:
        unknown = sorted(set(categories) - set(CATEGORY_ORDER))
        if unknown:
            raise ConfigError(f"Unknown categories: {', '.join(unknown)}")
        config.categories = sorted(dict.fromkeys(categories), key=category_sort_key)

    budget_data = data.get("size_budget")
    if isinstance(budget_data, (int, str)) and not isinstance(budget_data, bool):
        config.budget.default = _as_int(budget_data)
    else:
        budget_map = _as_dict(budget_data)
        config.budget.default = _as_int(budget_map.get("default"))
        for category, value in _as_dict(budget_map.get("overrides")).items():
            parsed = _as_int(value)
            if parsed is not None:
                config.budget.overrides[str(category)] = parsed

    partition = _as_str(data.get("partition"))
    if partition:
        if partition not in PARTITION_STRATEGIES:
            raise ConfigError(
                f"partition must be one of {', '.join(PARTITION_STRATEGIES)}, got {partition!r}"
            )
        config.partition = partition

    extractor_data = _as_dict(data.get("extractors"))
    if extractor_data:
        config.extractors.enabled = _as_str_list(extractor_data.get("enabled"))
        config.extractors.exclude_paths = _as_str_list(extractor_data.get("exclude_paths"))

    config.exclude_paths = _as_str_list(data.get("exclude_paths"))
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path, text: str) -> Any:
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "BudgetConfig",
    "ConfigError",
    "DocSyncConfig",
    "ExtractorConfig",
    "load_config",
]
