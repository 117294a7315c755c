"""Scanner that links test-code expectations to extracted entities."""

from __future__ import annotations

import ast
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from tree_sitter import Node

from ..errors import ExtractionError
from ..logging import get_logger
from ..models import Entity, FileMeta, SourceLocation, TestAssertion
from .base import ExtractionContext, is_test_path
from .syntax import SourceTree, line_of, named, parse_source, string_value, walk

DECLARES = "declares"
EQUALS = "equals"
ARITY = "arity"

_TEST_LANGUAGES = frozenset({"JavaScript", "TypeScript", "Python"})
_MATCHERS = frozenset({"toBe", "toEqual", "toStrictEqual"})

# Attributes an ``equals`` assertion may name that are stored under another name.
_ATTRIBUTE_ALIASES = {"__tablename__": "table", "tableName": "table", "length": "arity"}

# ``((row, column), entity name, assertion)``; the position orders findings.
_Found = Tuple[Tuple[int, int], str, TestAssertion]

logger = get_logger("extractors.tests")


class TestAssertionScanner:
    """Finds assertions about named entities inside test files.

    Three kinds of expectation are recognised:

    * ``declares``: a test passes an attribute (JSX prop, keyword argument,
      object key) that the entity is expected to accept.
    * ``equals``: a test asserts the value of an entity attribute.
    * ``arity``: a test calls a function-like entity with N arguments.

    JavaScript and TypeScript tests are read with tree-sitter, Python tests
    with :mod:`ast`.
    """

    __test__ = False

    def attach(
        self,
        entities: Sequence[Entity],
        context: ExtractionContext,
        errors: Optional[List[ExtractionError]] = None,
    ) -> List[Entity]:
        if not entities:
            return list(entities)
        by_identity: Dict[str, List[Entity]] = {}
        for entity in entities:
            by_identity.setdefault(_reference_name(entity), []).append(entity)
        collected: Dict[Tuple[str, str], List[TestAssertion]] = {entity.key: [] for entity in entities}

        for meta in self._test_files(context):
            try:
                found = self.scan(meta, context.read_text(meta.path), by_identity.keys())
            except ExtractionError as exc:
                logger.warning("Skipped test file %s: %s", exc.path, exc.reason)
                if errors is not None:
                    errors.append(exc)
                continue
            for name, assertion in found:
                for entity in by_identity[name]:
                    if _applies(entity, assertion):
                        bucket = collected[entity.key]
                        if assertion not in bucket:
                            bucket.append(assertion)

        return [entity.with_assertions(collected[entity.key]) for entity in entities]

    def scan(self, meta: FileMeta, text: str, names: Iterable[str]) -> List[Tuple[str, TestAssertion]]:
        """Return ``(entity name, assertion)`` pairs in source order.

        Raises:
            ExtractionError: when a Python test file does not parse.
        """
        wanted = {name for name in names if name}
        if not wanted:
            return []
        if meta.language == "Python":
            found = self._scan_python(meta, text, wanted)
        else:
            found = self._scan_js(meta, text, wanted)
        found.sort(key=lambda item: item[0])
        return [(name, assertion) for _, name, assertion in found]

    # ------------------------------------------------------------------
    # JavaScript / TypeScript

    def _scan_js(self, meta: FileMeta, text: str, wanted: Set[str]) -> List[_Found]:
        tree = parse_source(meta.path, text)
        found: List[_Found] = []
        for node in walk(tree.root):
            if node.type in {"jsx_self_closing_element", "jsx_opening_element"}:
                name = tree.text(node.child_by_field_name("name"))
                if name in wanted:
                    found.extend((node.start_point, name, item) for item in self._jsx_props(meta, tree, node))
            elif node.type == "new_expression":
                name = tree.text(node.child_by_field_name("constructor"))
                arguments = named(node.child_by_field_name("arguments"))
                if name in wanted and len(arguments) == 1 and arguments[0].type == "object":
                    keys = self._js_keys(meta, tree, node, arguments[0])
                    found.extend((node.start_point, name, item) for item in keys)
            elif node.type == "call_expression":
                found.extend(self._js_call(meta, tree, node, wanted))
        return found

    def _js_call(self, meta: FileMeta, tree: SourceTree, node: Node, wanted: Set[str]) -> List[_Found]:
        callee = node.child_by_field_name("function")
        arguments_node = node.child_by_field_name("arguments")
        if callee is None or arguments_node is None or arguments_node.type != "arguments":
            return []
        arguments = named(arguments_node)
        location = SourceLocation(meta.path, line_of(node))
        if callee.type == "identifier":
            name = tree.text(callee)
            if name not in wanted or any(argument.type == "spread_element" for argument in arguments):
                return []
            assertion = TestAssertion(ARITY, "arity", str(len(arguments)), location, tree.line_text(node))
            return [(node.start_point, name, assertion)]
        if callee.type != "member_expression":
            return []
        owner = callee.child_by_field_name("object")
        method = tree.text(callee.child_by_field_name("property"))
        owner_name = tree.text(owner)
        if owner_name in wanted and method == "create" and arguments and arguments[0].type == "object":
            return [(node.start_point, owner_name, item) for item in self._js_keys(meta, tree, node, arguments[0])]
        if method in _MATCHERS and arguments and owner is not None and owner.type == "call_expression":
            subject = self._expected_subject(tree, owner)
            if subject is not None and subject[0] in wanted:
                name, attribute = subject
                assertion = TestAssertion(
                    EQUALS,
                    _ATTRIBUTE_ALIASES.get(attribute, attribute),
                    normalise_value(tree.text(arguments[0])),
                    location,
                    tree.line_text(node),
                )
                return [(node.start_point, name, assertion)]
        return []

    @staticmethod
    def _expected_subject(tree: SourceTree, call: Node) -> Optional[Tuple[str, str]]:
        """Return ``(entity, attribute)`` for ``expect(Entity.attribute)``."""
        if tree.text(call.child_by_field_name("function")) != "expect":
            return None
        arguments = named(call.child_by_field_name("arguments"))
        if len(arguments) != 1 or arguments[0].type != "member_expression":
            return None
        subject = arguments[0]
        owner = subject.child_by_field_name("object")
        if owner is None or owner.type != "identifier":
            return None
        return tree.text(owner), tree.text(subject.child_by_field_name("property"))

    @staticmethod
    def _jsx_props(meta: FileMeta, tree: SourceTree, element: Node) -> List[TestAssertion]:
        location = SourceLocation(meta.path, line_of(element))
        statement = tree.line_text(element)
        assertions: List[TestAssertion] = []
        for attribute in named(element):
            if attribute.type != "jsx_attribute":
                continue
            parts = named(attribute)
            prop = tree.text(parts[0]) if parts else ""
            if prop and prop not in {"key", "ref"}:
                assertions.append(TestAssertion(DECLARES, prop, "*", location, statement))
        return assertions

    @staticmethod
    def _js_keys(meta: FileMeta, tree: SourceTree, call: Node, literal: Node) -> List[TestAssertion]:
        location = SourceLocation(meta.path, line_of(call))
        statement = tree.line_text(call)
        assertions: List[TestAssertion] = []
        for item in named(literal):
            key: Optional[str] = None
            if item.type == "shorthand_property_identifier":
                key = tree.text(item)
            elif item.type == "pair":
                key_node = item.child_by_field_name("key")
                if key_node is not None and key_node.type == "string":
                    key = string_value(tree, key_node)
                elif key_node is not None and key_node.type == "property_identifier":
                    key = tree.text(key_node)
            if key:
                assertions.append(TestAssertion(DECLARES, key, "*", location, statement))
        return assertions

    # ------------------------------------------------------------------
    # Python

    def _scan_python(self, meta: FileMeta, text: str, wanted: Set[str]) -> List[_Found]:
        try:
            tree = ast.parse(text, filename=meta.path)
        except SyntaxError as exc:
            raise ExtractionError(meta.path, f"syntax error at line {exc.lineno}") from exc
        lines = text.splitlines()
        found: List[_Found] = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Call):
                found.extend(self._python_call(meta, lines, node, wanted))
            elif isinstance(node, ast.Assert):
                equality = _python_equality(node.test, wanted)
                if equality is None:
                    continue
                name, attribute, expected = equality
                literal = ast.get_source_segment(text, expected) or ast.unparse(expected)
                assertion = TestAssertion(
                    EQUALS,
                    _ATTRIBUTE_ALIASES.get(attribute, attribute),
                    normalise_value(literal),
                    SourceLocation(meta.path, node.lineno),
                    _line(lines, node.lineno),
                )
                found.append(((node.lineno - 1, node.col_offset), name, assertion))
        return found

    @staticmethod
    def _python_call(meta: FileMeta, lines: List[str], node: ast.Call, wanted: Set[str]) -> List[_Found]:
        position = (node.lineno - 1, node.col_offset)
        location = SourceLocation(meta.path, node.lineno)
        statement = _line(lines, node.lineno)
        func = node.func
        if isinstance(func, ast.Name) and func.id in wanted:
            if any(isinstance(arg, ast.Starred) for arg in node.args) or any(kw.arg is None for kw in node.keywords):
                return []
            found: List[_Found] = [
                (position, func.id, TestAssertion(DECLARES, kw.arg, "*", location, statement))
                for kw in node.keywords
                if kw.arg is not None
            ]
            arity = str(len(node.args) + len(node.keywords))
            found.append((position, func.id, TestAssertion(ARITY, "arity", arity, location, statement)))
            return found
        if isinstance(func, ast.Attribute) and func.attr == "create" and isinstance(func.value, ast.Name):
            owner = func.value.id
            if owner not in wanted:
                return []
            keys = [kw.arg for kw in node.keywords if kw.arg is not None]
            if node.args and isinstance(node.args[0], ast.Dict):
                keys = [
                    key.value
                    for key in node.args[0].keys
                    if isinstance(key, ast.Constant) and isinstance(key.value, str)
                ] + keys
            return [(position, owner, TestAssertion(DECLARES, key, "*", location, statement)) for key in keys]
        return []

    @staticmethod
    def _test_files(context: ExtractionContext) -> Iterator[FileMeta]:
        for meta in context.manifest.files:
            if meta.language not in _TEST_LANGUAGES:
                continue
            if meta.role == "test" or is_test_path(meta.path):
                yield meta


def _python_equality(test: ast.expr, wanted: Set[str]) -> Optional[Tuple[str, str, ast.expr]]:
    """Match ``Entity.attribute == value``."""
    if not isinstance(test, ast.Compare) or len(test.ops) != 1 or not isinstance(test.ops[0], ast.Eq):
        return None
    subject = test.left
    if not isinstance(subject, ast.Attribute) or not isinstance(subject.value, ast.Name):
        return None
    if subject.value.id not in wanted:
        return None
    return subject.value.id, subject.attr, test.comparators[0]


def _line(lines: List[str], number: int) -> str:
    return lines[number - 1].strip() if 0 < number <= len(lines) else ""


def normalise_value(value: str) -> str:
    """Strip quotes and collapse whitespace so literals compare by content."""
    cleaned = " ".join(value.strip().rstrip(";").split())
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'`":
        cleaned = cleaned[1:-1]
    return cleaned


def _reference_name(entity: Entity) -> str:
    # Routed screens are referenced in tests by their component name.
    if entity.kind == "screen":
        return entity.attribute("component") or entity.identity
    return entity.identity


def _applies(entity: Entity, assertion: TestAssertion) -> bool:
    if assertion.check == ARITY:
        return entity.kind in {"utility", "hook"}
    return True


__all__ = ["ARITY", "DECLARES", "EQUALS", "TestAssertionScanner", "normalise_value"]
