"""Extractor for navigable screens and pages."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..models import Entity, FileMeta, make_entity
from .base import TEST_PATTERNS, ExtractionContext, Extractor
from .source import JS_LANGUAGES, pascal_case
from .syntax import (
    Declaration,
    SourceTree,
    default_export_name,
    function_value,
    line_of,
    named,
    parameters,
    parse_source,
    string_value,
    top_level_declarations,
    walk,
)

_HOOK_NAME = re.compile(r"^use[A-Z][\w$]*$")
_SCREEN_NAME = re.compile(r"^[A-Z][\w$]*(?:Screen|Page|View)$")
_NAVIGATORS = {"navigation": {"navigate", "push", "replace"}, "router": {"push", "replace"}}
_ROUTE_GROUP = re.compile(r"^\(.*\)$")


class ScreenExtractor(Extractor):
    """Finds screen components (React Native screens, Next.js pages, views)."""

    name = "screens"
    category = "screens"
    kinds = ("screen",)
    patterns = (
        "screens/",
        "pages/",
        "views/",
        "app/page.*",
        "app/*/page.*",
        "*/app/page.*",
        "*/app/*/page.*",
        "*Screen.*",
    )
    languages = JS_LANGUAGES
    test_patterns = TEST_PATTERNS

    def matches(self, meta: FileMeta) -> bool:
        if not super().matches(meta):
            return False
        name = PurePosixPath(meta.path).name
        if name.startswith("_") or "/pages/api/" in f"/{meta.path}":
            return False
        return True

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        tree = parse_source(meta.path, text)
        component, declaration, line = _default_component(tree, list(top_level_declarations(tree)))
        route = route_for(meta.path)
        if component is None:
            if route is None:
                return []
            component = _component_from_path(meta.path)

        attributes: List[Tuple[str, str]] = [("component", component)]
        if route is not None:
            attributes.append(("route", route))
        props = _component_props(tree, declaration)
        if props:
            attributes.append(("props", ", ".join(props)))
        hooks, targets = _calls(tree)
        if hooks:
            attributes.append(("hooks", ", ".join(sorted(hooks))))
        if targets:
            attributes.append(("navigates_to", ", ".join(sorted(targets))))

        identity = route if route is not None else component
        return [make_entity("screen", identity, attributes, path=meta.path, line=line)]


def route_for(path: str) -> Optional[str]:
    """Return the URL route implied by a file-system routed page, if any."""
    parts = PurePosixPath(path).parts
    if "pages" in parts:
        index = len(parts) - 1 - parts[::-1].index("pages")
        segments = list(parts[index + 1 :])
        if not segments:
            return None
        segments[-1] = PurePosixPath(segments[-1]).stem
        if segments[-1] == "index":
            segments.pop()
        return "/" + "/".join(segments)
    if "app" in parts and PurePosixPath(path).stem == "page":
        index = len(parts) - 1 - parts[::-1].index("app")
        segments = [segment for segment in parts[index + 1 : -1] if not _ROUTE_GROUP.match(segment)]
        return "/" + "/".join(segments)
    return None


def _default_component(
    tree: SourceTree, declarations: Sequence[Declaration]
) -> Tuple[Optional[str], Optional[Declaration], int]:
    """Return ``(component name, its declaration, line)`` for the screen."""
    for declaration in declarations:
        if declaration.default:
            return declaration.name, declaration, line_of(declaration.statement)
    exported = default_export_name(tree)
    if exported is not None:
        name, statement = exported
        for declaration in declarations:
            if declaration.name == name:
                return name, declaration, line_of(declaration.statement)
        return name, None, line_of(statement)
    for declaration in declarations:
        if _SCREEN_NAME.match(declaration.name) and function_value(tree, declaration.node) is not None:
            return declaration.name, declaration, line_of(declaration.statement)
    return None, None, 1


def _component_props(tree: SourceTree, declaration: Optional[Declaration]) -> List[str]:
    if declaration is None:
        return []
    function = function_value(tree, declaration.node)
    if function is None:
        return []
    params = parameters(tree, function)
    if not params or not (params[0].destructured or params[0].remainder):
        return []
    props = [name for name, _ in params[0].destructured]
    if params[0].remainder:
        props.append(f"...{params[0].remainder}")
    return props


def _calls(tree: SourceTree) -> Tuple[Set[str], Set[str]]:
    """Collect hook names and navigation targets used anywhere in the file."""
    hooks: Set[str] = set()
    targets: Set[str] = set()
    for node in walk(tree.root):
        if node.type == "call_expression":
            callee = node.child_by_field_name("function")
            if callee is None:
                continue
            path = tree.text(callee).replace("?.", ".").split(".")
            if _HOOK_NAME.match(path[-1]):
                hooks.add(path[-1])
            if _is_navigation(path):
                arguments = named(node.child_by_field_name("arguments"))
                target = string_value(tree, arguments[0]) if arguments else None
                if target:
                    targets.add(target)
        elif node.type == "jsx_attribute":
            target = _jsx_target(tree, node)
            if target:
                targets.add(target)
    return hooks, targets


def _is_navigation(path: List[str]) -> bool:
    if path == ["navigate"]:
        return True
    return len(path) >= 2 and path[-1] in _NAVIGATORS.get(path[-2], set())


def _jsx_target(tree: SourceTree, attribute) -> Optional[str]:  # type: ignore[no-untyped-def]
    parts = named(attribute)
    if len(parts) < 2:
        return None
    name = tree.text(parts[0])
    value = parts[1]
    if value.type == "jsx_expression":
        inner = named(value)
        value = inner[0] if inner else value
    target = string_value(tree, value)
    if target is None:
        return None
    if name == "href" and target.startswith("/"):
        return target
    element = attribute.parent
    if name == "to" and element is not None and tree.text(element.child_by_field_name("name")) == "Redirect":
        return target
    return None


def _component_from_path(path: str) -> str:
    pure = PurePosixPath(path)
    if pure.stem in {"page", "index"}:
        parent = pure.parent.name
        if parent and parent not in {"app", "pages"}:
            return f"{pascal_case(parent)}Page"
        return "IndexPage"
    return pascal_case(pure.stem)


__all__ = ["ScreenExtractor", "route_for"]
