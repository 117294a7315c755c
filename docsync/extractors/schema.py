"""Extractor for database schema models."""

from __future__ import annotations

import ast
import re
from typing import Iterable, List, Optional, Tuple

from ..errors import ExtractionError
from ..models import Entity, FileMeta, make_entity
from .base import TEST_PATTERNS, ExtractionContext, Extractor
from .source import balanced_body, line_of, split_top_level
from .syntax import CLASS_DECLARATIONS, annotation_text, decorators, named, parse_source, string_value
from .syntax import line_of as node_line

_PRISMA_MODEL = re.compile(r"(?m)^\s*model\s+(\w+)\s*\{")
_PRISMA_FIELD = re.compile(r"^(\w+)\s+([\w\[\]?.]+)(.*)$")
_PRISMA_MAP = re.compile(r"@@map\(\s*\"([^\"]+)\"\s*\)")
_PRISMA_NOISE = re.compile(r'"(?:\\.|[^"\\\n])*"|//[^\n]*')

_SQL_TABLE = re.compile(
    r"create\s+table\s+(?:if\s+not\s+exists\s+)?(?:[\"`\[]?\w+[\"`\]]?\.)?[\"`\[]?(\w+)[\"`\]]?\s*\(",
    re.IGNORECASE,
)
_SQL_CONSTRAINT = re.compile(r"^(?:constraint|primary\s+key|foreign\s+key|unique|check|index|key)\b", re.IGNORECASE)

_TYPEORM_COLUMN = re.compile(
    r"^(?:\w*Column|PrimaryGeneratedColumn|PrimaryColumn|ManyToOne|OneToMany|OneToOne|ManyToMany)$"
)

_PY_MODEL_BASES = {"Base", "Model", "BaseModel", "SQLModel", "DeclarativeBase", "Document", "EmbeddedDocument"}
_PY_IGNORED_FIELDS = {"model_config", "objects"}


class SchemaExtractor(Extractor):
    """Finds ORM models and table definitions (Prisma, SQL, SQLAlchemy, Django, pydantic, TypeORM)."""

    name = "schema"
    category = "database"
    kinds = ("schema-model",)
    patterns = (
        "*.prisma",
        "*.sql",
        "models/",
        "models.py",
        "model.py",
        "schemas/",
        "schema.py",
        "schemas.py",
        "entities/",
        "entity/",
        "*.entity.ts",
        "db/",
        "database/",
    )
    languages = frozenset({"Prisma", "SQL", "Python", "TypeScript", "JavaScript"})
    test_patterns = TEST_PATTERNS

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        if meta.language == "Prisma":
            return list(self._extract_prisma(meta, text))
        if meta.language == "SQL":
            return list(self._extract_sql(meta, text))
        if meta.language == "Python":
            return list(self._extract_python(meta, text))
        return list(self._extract_typeorm(meta, text))

    def _extract_prisma(self, meta: FileMeta, text: str) -> Iterable[Entity]:
        code = _strip_prisma_comments(text)
        for match in _PRISMA_MODEL.finditer(code):
            body = balanced_body(code, match.end() - 1)
            if body is None:
                raise ExtractionError(meta.path, f"unterminated model {match.group(1)}")
            attributes: List[Tuple[str, str]] = []
            table: Optional[str] = None
            for raw in body.splitlines():
                line = raw.strip()
                if not line:
                    continue
                if line.startswith("@@"):
                    mapped = _PRISMA_MAP.search(line)
                    if mapped:
                        table = mapped.group(1)
                    continue
                field = _PRISMA_FIELD.match(line)
                if field:
                    name, type_text, modifiers = field.groups()
                    value = f"{type_text} {' '.join(modifiers.split())}".strip()
                    attributes.append((name, value))
            if table:
                attributes.append(("table", table))
            yield make_entity(
                "schema-model", match.group(1), attributes, path=meta.path, line=line_of(code, match.start())
            )

    def _extract_sql(self, meta: FileMeta, text: str) -> Iterable[Entity]:
        code = re.sub(r"--[^\n]*", lambda m: " " * len(m.group(0)), text)
        for match in _SQL_TABLE.finditer(code):
            body = balanced_body(code, match.end() - 1)
            if body is None:
                raise ExtractionError(meta.path, f"unterminated table {match.group(1)}")
            attributes: List[Tuple[str, str]] = []
            for column in split_top_level(body, ","):
                if _SQL_CONSTRAINT.match(column):
                    continue
                parts = column.split(None, 1)
                if len(parts) < 2:
                    continue
                name = parts[0].strip("\"`[]")
                attributes.append((name, " ".join(parts[1].split())))
            attributes.append(("table", match.group(1)))
            yield make_entity(
                "schema-model", match.group(1), attributes, path=meta.path, line=line_of(code, match.start())
            )

    def _extract_python(self, meta: FileMeta, text: str) -> Iterable[Entity]:
        try:
            tree = ast.parse(text, filename=meta.path)
        except SyntaxError as exc:
            raise ExtractionError(meta.path, f"syntax error at line {exc.lineno}") from exc
        for node in tree.body:
            if not isinstance(node, ast.ClassDef) or not _is_model_class(node):
                continue
            attributes: List[Tuple[str, str]] = []
            table: Optional[str] = None
            for statement in node.body:
                if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
                    name = statement.target.id
                    if name.startswith("_") or name in _PY_IGNORED_FIELDS:
                        continue
                    attributes.append((name, _annotation_type(statement.annotation)))
                elif isinstance(statement, ast.Assign) and len(statement.targets) == 1:
                    target = statement.targets[0]
                    if not isinstance(target, ast.Name):
                        continue
                    if target.id == "__tablename__" and isinstance(statement.value, ast.Constant):
                        table = str(statement.value.value)
                        continue
                    if target.id.startswith("_") or target.id in _PY_IGNORED_FIELDS:
                        continue
                    if isinstance(statement.value, ast.Call):
                        attributes.append((target.id, _column_type(statement.value)))
            if not attributes and table is None:
                continue
            if table:
                attributes.append(("table", table))
            yield make_entity("schema-model", node.name, attributes, path=meta.path, line=node.lineno)

    def _extract_typeorm(self, meta: FileMeta, text: str) -> Iterable[Entity]:
        tree = parse_source(meta.path, text)
        for statement in named(tree.root):
            node = statement.child_by_field_name("declaration") if statement.type == "export_statement" else statement
            if node is None or node.type not in CLASS_DECLARATIONS:
                continue
            entity = next((d for d in decorators(tree, statement, node) if d.name == "Entity"), None)
            if entity is None:
                continue
            attributes: List[Tuple[str, str]] = []
            for member in named(node.child_by_field_name("body")):
                if member.type != "public_field_definition":
                    continue
                column = next((d for d in decorators(tree, member) if _TYPEORM_COLUMN.match(d.name)), None)
                if column is None:
                    continue
                type_text = annotation_text(tree, member.child_by_field_name("type")) or "any"
                attributes.append((tree.text(member.child_by_field_name("name")), f"{type_text} @{column.name}"))
            table = string_value(tree, entity.arguments[0]) if entity.arguments else None
            if table:
                attributes.append(("table", table))
            yield make_entity(
                "schema-model",
                tree.text(node.child_by_field_name("name")),
                attributes,
                path=meta.path,
                line=node_line(statement),
            )


def _strip_prisma_comments(text: str) -> str:
    """Blank out ``//`` comments, keeping offsets and quoted strings intact."""

    def blank(match: "re.Match[str]") -> str:
        token = match.group(0)
        return token if token.startswith('"') else " " * len(token)

    return _PRISMA_NOISE.sub(blank, text)


def _is_model_class(node: ast.ClassDef) -> bool:
    for base in node.bases:
        name = ast.unparse(base).rsplit(".", 1)[-1]
        if name in _PY_MODEL_BASES or name.endswith(("Model", "Base")):
            return True
    return False


def _annotation_type(annotation: ast.expr) -> str:
    # ``Mapped[int]`` documents the column as ``int``.
    if isinstance(annotation, ast.Subscript) and ast.unparse(annotation.value).endswith("Mapped"):
        return ast.unparse(annotation.slice)
    return ast.unparse(annotation)


def _column_type(call: ast.Call) -> str:
    func = ast.unparse(call.func).rsplit(".", 1)[-1]
    if func in {"Column", "mapped_column"}:
        for arg in call.args:
            if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                continue
            return ast.unparse(arg)
        return func
    if func in {"relationship", "ForeignKey"} and call.args:
        target = call.args[0]
        label = target.value if isinstance(target, ast.Constant) else ast.unparse(target)
        return f"{func}({label})"
    return func


__all__ = ["SchemaExtractor"]
