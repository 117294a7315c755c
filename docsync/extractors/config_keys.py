"""Extractor for configuration keys (environment variables)."""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterator, List, Optional, Tuple

from tree_sitter import Node

from ..errors import ExtractionError
from ..models import FileMeta, make_entity
from .base import ExtractionContext, ExtractionResult, Extractor
from .syntax import SourceTree, line_of, parse_source, string_value, walk

_ENV_LINE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")
_TEMPLATE_MARKERS = ("example", "sample", "template", "dist")

_JS_ENV_OBJECTS = frozenset(
    {"process.env", "import.meta.env", "Constants.expoConfig.extra", "Constants.manifest.extra"}
)
_PY_ENV_CALLS = frozenset({"os.environ.get", "os.getenv"})

_CODE_LANGUAGES = frozenset({"JavaScript", "TypeScript", "Python"})


@dataclass
class _KeyRecord:
    default: Optional[str] = None
    declared_in: List[str] = field(default_factory=list)
    referenced_in: List[str] = field(default_factory=list)
    path: str = ""
    line: int = 0


class ConfigKeyExtractor(Extractor):
    """Collects config keys declared in ``.env*`` files or looked up in code.

    One entity is produced per key no matter how many files mention it.
    Values are only recorded from template files (``.env.example`` and
    friends) so secrets from real ``.env`` files never reach the documents.
    """

    name = "config_keys"
    category = "configuration"
    kinds = ("config-key",)
    patterns = (".env*", "*.py", "*.js", "*.jsx", "*.mjs", "*.cjs", "*.ts", "*.tsx")

    def matches(self, meta: FileMeta) -> bool:
        if is_env_file(meta.path):
            return True
        return meta.language in _CODE_LANGUAGES and super().matches(meta)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        result = ExtractionResult()
        records: Dict[str, _KeyRecord] = {}
        for meta, text in self.sources(context, result.errors):
            try:
                if is_env_file(meta.path):
                    self._read_env_file(meta, text, records)
                else:
                    self._read_code(meta, text, records)
            except ExtractionError as exc:
                self._record_error(exc, result.errors)

        for key in sorted(records):
            record = records[key]
            attributes = []
            if record.default is not None:
                attributes.append(("default", record.default))
            if record.declared_in:
                attributes.append(("declared_in", ", ".join(record.declared_in)))
            if record.referenced_in:
                attributes.append(("referenced_in", ", ".join(record.referenced_in)))
            result.entities.append(
                make_entity("config-key", key, attributes, path=record.path, line=record.line)
            )
        return result

    def _read_env_file(self, meta: FileMeta, text: str, records: Dict[str, _KeyRecord]) -> None:
        template = _is_template(meta.path)
        for number, raw in enumerate(text.splitlines(), start=1):
            if not raw.strip() or raw.lstrip().startswith("#"):
                continue
            match = _ENV_LINE.match(raw)
            if not match:
                continue
            key, value = match.groups()
            record = _record_for(records, key, meta.path, number)
            if meta.path not in record.declared_in:
                record.declared_in.append(meta.path)
            if template and record.default is None:
                cleaned = _strip_inline_comment(value).strip().strip("'\"")
                if cleaned:
                    record.default = cleaned

    def _read_code(self, meta: FileMeta, text: str, records: Dict[str, _KeyRecord]) -> None:
        if meta.language == "Python":
            for key, line, fallback in _python_lookups(meta, text):
                self._reference(records, key, meta.path, line, fallback)
            return
        tree = parse_source(meta.path, text)
        for node in walk(tree.root):
            key = _js_lookup(tree, node)
            if key is not None:
                self._reference(records, key, meta.path, line_of(node), _js_fallback(tree, node))

    @staticmethod
    def _reference(
        records: Dict[str, _KeyRecord], key: str, path: str, line: int, fallback: Optional[str]
    ) -> None:
        record = _record_for(records, key, path, line)
        if path not in record.referenced_in:
            record.referenced_in.append(path)
        if fallback and record.default is None:
            cleaned = fallback.strip().strip("'\"")
            if cleaned and cleaned not in {"None", "undefined", "null"}:
                record.default = cleaned


def _js_lookup(tree: SourceTree, node: Node) -> Optional[str]:
    """Key read by ``process.env.KEY``, ``process.env['KEY']`` and friends."""
    if node.type == "member_expression":
        owner = tree.text(node.child_by_field_name("object")).replace("?.", ".")
        if owner in _JS_ENV_OBJECTS:
            return tree.text(node.child_by_field_name("property"))
    elif node.type == "subscript_expression":
        owner = tree.text(node.child_by_field_name("object")).replace("?.", ".")
        if owner in _JS_ENV_OBJECTS:
            return string_value(tree, node.child_by_field_name("index"))
    return None


def _js_fallback(tree: SourceTree, node: Node) -> Optional[str]:
    """Right-hand side of ``lookup || fallback`` or ``lookup ?? fallback``."""
    parent = node.parent
    if parent is None or parent.type != "binary_expression":
        return None
    operator = parent.child_by_field_name("operator")
    left = parent.child_by_field_name("left")
    if operator is None or operator.type not in {"||", "??"}:
        return None
    if left is None or (left.start_byte, left.end_byte) != (node.start_byte, node.end_byte):
        return None
    right = parent.child_by_field_name("right")
    if right is None:
        return None
    value = string_value(tree, right)
    return value if value is not None else tree.text(right)


def _python_lookups(meta: FileMeta, text: str) -> Iterator[Tuple[str, int, Optional[str]]]:
    """Yield ``(key, line, fallback)`` for ``os.environ`` and ``os.getenv`` reads."""
    try:
        tree = ast.parse(text, filename=meta.path)
    except SyntaxError as exc:
        raise ExtractionError(meta.path, f"syntax error at line {exc.lineno}") from exc
    for node in ast.walk(tree):
        if isinstance(node, ast.Subscript) and ast.unparse(node.value) == "os.environ":
            key = node.slice
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                yield key.value, node.lineno, None
        elif isinstance(node, ast.Call) and ast.unparse(node.func) in _PY_ENV_CALLS and node.args:
            key = node.args[0]
            if not isinstance(key, ast.Constant) or not isinstance(key.value, str):
                continue
            fallback = None
            if len(node.args) > 1:
                default = node.args[1]
                if isinstance(default, ast.Constant):
                    fallback = None if default.value is None else str(default.value)
                else:
                    fallback = ast.unparse(default)
            yield key.value, node.lineno, fallback


def _record_for(records: Dict[str, _KeyRecord], key: str, path: str, line: int) -> _KeyRecord:
    record = records.get(key)
    if record is None:
        record = _KeyRecord(path=path, line=line)
        records[key] = record
    return record


def is_env_file(path: str) -> bool:
    return PurePosixPath(path).name.startswith(".env")


def _is_template(path: str) -> bool:
    name = PurePosixPath(path).name.lower()
    return any(marker in name for marker in _TEMPLATE_MARKERS)


def _strip_inline_comment(value: str) -> str:
    if value.startswith(("'", '"')):
        return value
    return value.split(" #", 1)[0]


__all__ = ["ConfigKeyExtractor", "is_env_file"]
