"""Extractor for exported utility functions."""

from __future__ import annotations

import ast
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tree_sitter import Node

from ..errors import ExtractionError
from ..models import Entity, FileMeta, make_entity
from .base import TEST_PATTERNS, ExtractionContext, Extractor
from .source import JS_LANGUAGES, arity_label
from .syntax import (
    SourceTree,
    function_value,
    js_param_attributes,
    line_of,
    named,
    parameters,
    parse_source,
    return_type,
    top_level_declarations,
)

_COMMONJS_TARGETS = frozenset({"exports", "module.exports"})

_LANGUAGES = JS_LANGUAGES | {"Python"}


class UtilityExtractor(Extractor):
    """Documents public functions defined in utility and helper modules."""

    name = "utilities"
    category = "utilities"
    kinds = ("utility",)
    patterns = ("utils/", "util/", "lib/", "helpers/", "utils.*", "helpers.*")
    languages = _LANGUAGES
    test_patterns = TEST_PATTERNS

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        if meta.language == "Python":
            return self._extract_python(meta, text)
        return self._extract_js(meta, text)

    # ------------------------------------------------------------------
    # JavaScript / TypeScript

    def _extract_js(self, meta: FileMeta, text: str) -> List[Entity]:
        tree = parse_source(meta.path, text)
        functions: Dict[str, Tuple[Node, Node]] = {}
        exported: Set[str] = set()

        for declaration in top_level_declarations(tree):
            function = function_value(tree, declaration.node)
            if function is None:
                continue
            functions.setdefault(declaration.name, (function, declaration.statement))
            if declaration.exported:
                exported.add(declaration.name)

        for statement in named(tree.root):
            if statement.type == "export_statement":
                exported.update(_export_clause_names(tree, statement))
            elif statement.type == "expression_statement":
                _commonjs_exports(tree, statement, functions, exported)

        entities: List[Entity] = []
        for name, (function, statement) in sorted(functions.items(), key=lambda item: item[1][1].start_byte):
            if name not in exported:
                continue
            attributes, arity = js_param_attributes(parameters(tree, function))
            returns = return_type(tree, function)
            if returns:
                attributes.append(("returns", returns))
            attributes.append(("arity", arity))
            entities.append(make_entity("utility", name, attributes, path=meta.path, line=line_of(statement)))
        return entities

    # ------------------------------------------------------------------
    # Python

    def _extract_python(self, meta: FileMeta, text: str) -> List[Entity]:
        try:
            tree = ast.parse(text, filename=meta.path)
        except SyntaxError as exc:
            raise ExtractionError(meta.path, f"syntax error at line {exc.lineno}") from exc

        public = _dunder_all(tree)
        entities: List[Entity] = []
        for node in tree.body:
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            if public is not None:
                if node.name not in public:
                    continue
            elif node.name.startswith("_"):
                continue
            attributes, arity = python_param_attributes(node.args)
            if node.returns is not None:
                attributes.append(("returns", ast.unparse(node.returns)))
            attributes.append(("arity", arity))
            entities.append(make_entity("utility", node.name, attributes, path=meta.path, line=node.lineno))
        return entities


def python_param_attributes(args: ast.arguments) -> Tuple[List[Tuple[str, str]], str]:
    """Describe a Python signature as attribute pairs plus an arity label."""
    attributes: List[Tuple[str, str]] = []
    positional = list(args.posonlyargs) + list(args.args)
    defaults: List[Optional[ast.expr]] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    required = 0
    total = 0
    for arg, default in zip(positional, defaults):
        if arg.arg in {"self", "cls"}:
            continue
        attributes.append((arg.arg, _describe(arg, default)))
        total += 1
        if default is None:
            required += 1
    maximum: Optional[int] = total
    if args.vararg is not None:
        attributes.append((f"*{args.vararg.arg}", _describe(args.vararg, None)))
        maximum = None
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        attributes.append((arg.arg, _describe(arg, default)))
        if maximum is not None:
            maximum += 1
        if default is None:
            required += 1
    if args.kwarg is not None:
        attributes.append((f"**{args.kwarg.arg}", _describe(args.kwarg, None)))
        maximum = None
    return attributes, arity_label(required, maximum)


def _describe(arg: ast.arg, default: Optional[ast.expr]) -> str:
    value = ast.unparse(arg.annotation) if arg.annotation is not None else "any"
    if default is not None:
        value = f"{value} = {ast.unparse(default)}"
    return value


def _dunder_all(tree: ast.Module) -> Optional[Set[str]]:
    for node in tree.body:
        if not isinstance(node, ast.Assign):
            continue
        if not any(isinstance(target, ast.Name) and target.id == "__all__" for target in node.targets):
            continue
        if isinstance(node.value, (ast.List, ast.Tuple)):
            return {
                element.value
                for element in node.value.elts
                if isinstance(element, ast.Constant) and isinstance(element.value, str)
            }
    return None


def _export_clause_names(tree: SourceTree, statement: Node) -> Set[str]:
    """Local names listed in ``export { a, b as c }``."""
    names: Set[str] = set()
    if statement.child_by_field_name("source") is not None:
        return names
    for clause in named(statement):
        if clause.type != "export_clause":
            continue
        for specifier in named(clause):
            local = specifier.child_by_field_name("name")
            if local is not None:
                names.add(tree.text(local))
    return names


def _commonjs_exports(
    tree: SourceTree, statement: Node, functions: Dict[str, Tuple[Node, Node]], exported: Set[str]
) -> None:
    expressions = named(statement)
    if not expressions or expressions[0].type != "assignment_expression":
        return
    left = expressions[0].child_by_field_name("left")
    right = expressions[0].child_by_field_name("right")
    if left is None or right is None:
        return
    target = tree.text(left)
    if target == "module.exports" and right.type == "object":
        for item in named(right):
            if item.type == "shorthand_property_identifier":
                exported.add(tree.text(item))
            elif item.type == "pair":
                key = tree.text(item.child_by_field_name("key"))
                value = item.child_by_field_name("value")
                if value is not None and value.type == "identifier" and tree.text(value) in functions:
                    local = tree.text(value)
                    exported.add(local)
                    if key and key != local:
                        functions.setdefault(key, functions[local])
                        exported.add(key)
        return
    if left.type != "member_expression" or tree.text(left.child_by_field_name("object")) not in _COMMONJS_TARGETS:
        return
    name = tree.text(left.child_by_field_name("property"))
    if right.type == "identifier" and tree.text(right) in functions:
        local = tree.text(right)
        exported.add(local)
        if name != local:
            functions.setdefault(name, functions[local])
    else:
        function = function_value(tree, right)
        if function is None:
            return
        functions.setdefault(name, (function, statement))
    exported.add(name)


__all__ = ["UtilityExtractor", "python_param_attributes"]
