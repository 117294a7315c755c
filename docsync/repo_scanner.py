"""Source tree scanning and manifest building utilities."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import CONFIG_FILENAME, ConfigError, load_config
from .logging import get_logger
from .models import FileMeta, RepoManifest

_SKIPPED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".idea",
        ".next",
        ".expo",
        ".docsync",
        "dist",
        "build",
        "coverage",
    }
)
_SKIPPED_FILES = frozenset({".DS_Store", "Thumbs.db"})

_LANGUAGES = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".prisma": "Prisma",
    ".sql": "SQL",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
}

# First matching directory segment decides the role of a non-test file.
_DIRECTORY_ROLES: Tuple[Tuple[str, str], ...] = (
    ("tests", "test"),
    ("test", "test"),
    ("__tests__", "test"),
    ("docs", "docs"),
    ("doc", "docs"),
    ("examples", "examples"),
    ("example", "examples"),
    ("config", "config"),
    ("infra", "infra"),
)
_TEST_NAME_MARKERS = (".test.", ".spec.")

CACHE_FILENAME = "manifest_cache.json"
_CACHE_VERSION = 1
_STATE_DIR = ".docsync"

logger = get_logger("scanner")


@dataclass(frozen=True)
class IgnorePattern:
    """One gitignore-style pattern (from .gitignore or .docsync.yml)."""

    glob: str
    directory_only: bool = False
    rooted: bool = False
    negated: bool = False

    @classmethod
    def parse(cls, raw: str) -> Optional["IgnorePattern"]:
        text = raw.strip()
        if not text or text.startswith("#"):
            return None
        negated = text.startswith("!")
        text = text[1:] if negated else text
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        rooted = text.startswith("/") or "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(glob=text, directory_only=directory_only, rooted=rooted, negated=negated)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.rooted:
            return fnmatchcase(rel_path, self.glob)
        return any(fnmatchcase(segment, self.glob) for segment in rel_path.split("/"))


@dataclass
class IgnoreRules:
    """Ordered ignore patterns; the last matching pattern wins."""

    patterns: List[IgnorePattern] = field(default_factory=list)

    @classmethod
    def for_root(cls, root: Path) -> "IgnoreRules":
        rules = cls()
        gitignore = root / ".gitignore"
        if gitignore.is_file():
            rules.extend(gitignore.read_text(encoding="utf-8").splitlines())
        rules.extend(_configured_excludes(root))
        return rules

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            pattern = IgnorePattern.parse(line)
            if pattern is not None:
                self.patterns.append(pattern)

    def ignores(self, rel_path: str, is_dir: bool) -> bool:
        ignored = False
        for pattern in self.patterns:
            if pattern.matches(rel_path, is_dir):
                ignored = not pattern.negated
        return ignored


def _configured_excludes(root: Path) -> List[str]:
    try:
        config = load_config(root / CONFIG_FILENAME)
    except ConfigError as exc:
        logger.debug("Ignoring excludes from invalid %s: %s", CONFIG_FILENAME, exc)
        return []
    excludes = list(config.exclude_paths) + list(config.extractors.exclude_paths)
    # Generated documents never feed back into extraction.
    excludes.append(f"/{config.docs_dir}/")
    return excludes


class ManifestCache:
    """Content hashes from the previous scan, keyed by path, size and mtime."""

    def __init__(self, root: Path) -> None:
        self.path = root / _STATE_DIR / CACHE_FILENAME
        self._previous = self._load()
        self._current: Dict[str, Dict[str, object]] = {}

    def lookup(self, rel_path: str, size: int, mtime_ns: int) -> Optional[str]:
        entry = self._previous.get(rel_path)
        if entry and entry["size"] == size and entry["mtime_ns"] == mtime_ns:
            return str(entry["hash"])
        return None

    def record(self, rel_path: str, size: int, mtime_ns: int, file_hash: str) -> None:
        self._current[rel_path] = {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}

    def save(self) -> None:
        payload = {"version": _CACHE_VERSION, "files": self._current}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            logger.debug("Could not persist manifest cache: %s", exc)

    def _load(self) -> Dict[str, Dict[str, object]]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
            return {}
        files = payload.get("files")
        if not isinstance(files, dict):
            return {}
        return {
            rel_path: entry
            for rel_path, entry in files.items()
            if isinstance(entry, dict)
            and isinstance(entry.get("size"), int)
            and isinstance(entry.get("mtime_ns"), int)
            and isinstance(entry.get("hash"), str)
        }


def _walk(root: Path, rules: IgnoreRules) -> Iterator[Tuple[str, Path]]:
    """Yield ``(relative posix path, absolute path)`` in a stable sorted order."""
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        prefix = current.relative_to(root).as_posix() if current != root else ""

        kept = []
        for name in sorted(dirnames):
            rel_dir = f"{prefix}/{name}" if prefix else name
            if name not in _SKIPPED_DIRS and not rules.ignores(rel_dir, True):
                kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            rel_path = f"{prefix}/{name}" if prefix else name
            if name in _SKIPPED_FILES or rules.ignores(rel_path, False):
                continue
            yield rel_path, current / name


def detect_language(rel_path: str) -> Optional[str]:
    suffix = os.path.splitext(rel_path)[1].lower()
    return _LANGUAGES.get(suffix)


def detect_role(rel_path: str) -> str:
    """Classify a path as test, docs, config, examples, infra or src."""
    directories, _, name = rel_path.rpartition("/")
    if any(marker in name for marker in _TEST_NAME_MARKERS) or name == "conftest.py":
        return "test"
    if name.endswith(".py") and (name.startswith("test_") or name.endswith("_test.py")):
        return "test"
    segments = directories.split("/") if directories else []
    for segment, role in _DIRECTORY_ROLES:
        if segment in segments:
            return role
    if name.startswith(".env"):
        return "config"
    if name.endswith((".md", ".rst")):
        return "docs"
    return "src"


def _hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def manifest_fingerprint(manifest: RepoManifest) -> str:
    """Stable digest of every path and content hash in the manifest."""
    digest = hashlib.sha256()
    for meta in sorted(manifest.files, key=lambda item: item.path):
        digest.update(meta.path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(meta.hash.encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


class RepoScanner:
    """Walks the source tree to produce a normalized manifest."""

    def scan(self, root: str) -> RepoManifest:
        """Return a manifest describing project files and roles."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        rules = IgnoreRules.for_root(root_path)
        cache = ManifestCache(root_path)
        files: List[FileMeta] = []
        for rel_path, path in _walk(root_path, rules):
            stat_result = path.stat()
            file_hash = cache.lookup(rel_path, stat_result.st_size, stat_result.st_mtime_ns)
            if file_hash is None:
                file_hash = _hash_file(path)
            cache.record(rel_path, stat_result.st_size, stat_result.st_mtime_ns, file_hash)
            files.append(
                FileMeta(
                    path=rel_path,
                    size=stat_result.st_size,
                    language=detect_language(rel_path),
                    role=detect_role(rel_path),
                    hash=file_hash,
                )
            )

        cache.save()
        logger.debug("Scanned %d files under %s", len(files), root_path)
        return RepoManifest(root=str(root_path), files=files)


__all__ = ["RepoScanner", "detect_language", "detect_role", "manifest_fingerprint"]
