"""Extractors for UI components and React hooks."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from ..models import Entity, FileMeta, make_entity
from .base import TEST_PATTERNS, ExtractionContext, Extractor
from .screens import ScreenExtractor
from .source import JS_LANGUAGES
from .syntax import (
    CLASS_DECLARATIONS,
    Param,
    SourceTree,
    class_props_type,
    declared_type,
    function_value,
    js_param_attributes,
    line_of,
    parameters,
    parse_source,
    top_level_declarations,
    type_shape,
)

_COMPONENT_NAME = re.compile(r"^[A-Z][A-Za-z0-9_]*$")
_HOOK_NAME = re.compile(r"^use[A-Z][A-Za-z0-9_]*$")
_COMPONENT_BASES = re.compile(r"^(?:React\.)?(?:Pure)?Component$")

# Attribute naming the types a component's props inherit from.
EXTENDS = "extends"


def component_props(tree: SourceTree, param: Optional[Param], type_node=None) -> List[Tuple[str, str]]:  # type: ignore[no-untyped-def]
    """Describe a component's props from its first parameter and props type.

    Inherited or unresolved props types are listed under ``extends``, and a
    ``...rest`` element in the destructuring is kept as its own attribute;
    either one means the component accepts props beyond those listed.
    """
    defaults = param.destructured if param is not None else ()
    if type_node is None and param is not None:
        type_node = param.annotation
    shape = type_shape(tree, type_node)

    props: List[Tuple[str, str]] = []
    if shape is None or (not shape.members and shape.extends):
        for prop, default in defaults:
            props.append((prop, "any" if default is None else f"any = {default}"))
    else:
        default_map = dict(defaults)
        for member, type_text, optional in shape.members:
            default = default_map.get(member)
            if default is not None:
                props.append((member, f"{type_text} = {default}"))
            elif optional:
                props.append((member, f"{type_text} (optional)"))
            else:
                props.append((member, type_text))
    if shape is not None and shape.extends:
        props.append((EXTENDS, ", ".join(shape.extends)))
    if param is not None and param.remainder:
        props.append((f"...{param.remainder}", "other props"))
    return props


class ComponentExtractor(Extractor):
    """Finds PascalCase function and class components in JSX/TSX sources."""

    name = "components"
    category = "components"
    kinds = ("component",)
    patterns = ("*.jsx", "*.tsx", "components/", "ui/")
    languages = JS_LANGUAGES
    test_patterns = TEST_PATTERNS

    def __init__(self) -> None:
        self._screens = ScreenExtractor()

    def matches(self, meta: FileMeta) -> bool:
        if not super().matches(meta):
            return False
        # Screens are documented in their own category.
        return not self._screens.matches(meta)

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        tree = parse_source(meta.path, text)
        entities: List[Entity] = []
        for declaration in top_level_declarations(tree):
            if not _COMPONENT_NAME.match(declaration.name):
                continue
            line = line_of(declaration.statement)
            if declaration.node.type in CLASS_DECLARATIONS:
                heritage = class_props_type(tree, declaration.node)
                if heritage is None or not _COMPONENT_BASES.match(heritage[0]):
                    continue
                props = component_props(tree, None, heritage[1]) if heritage[1] is not None else []
                entities.append(make_entity("component", declaration.name, props, path=meta.path, line=line))
                continue
            function = function_value(tree, declaration.node)
            if function is None:
                continue
            params = parameters(tree, function)
            first = params[0] if params else None
            type_node = None
            if declaration.node.type == "variable_declarator":
                type_node = declared_type(tree, declaration.node)
            props = component_props(tree, first, type_node)
            entities.append(make_entity("component", declaration.name, props, path=meta.path, line=line))
        return entities


class HookExtractor(Extractor):
    """Finds custom React hooks (``useSomething`` functions)."""

    name = "hooks"
    category = "components"
    kinds = ("hook",)
    patterns = ("*.js", "*.jsx", "*.mjs", "*.ts", "*.tsx")
    languages = JS_LANGUAGES
    test_patterns = TEST_PATTERNS

    def extract_file(self, meta: FileMeta, text: str, context: ExtractionContext) -> Iterable[Entity]:
        tree = parse_source(meta.path, text)
        entities: List[Entity] = []
        for declaration in top_level_declarations(tree):
            if not _HOOK_NAME.match(declaration.name):
                continue
            function = function_value(tree, declaration.node)
            if function is None:
                continue
            attributes, arity = js_param_attributes(parameters(tree, function))
            attributes.append(("arity", arity))
            entities.append(
                make_entity("hook", declaration.name, attributes, path=meta.path, line=line_of(declaration.statement))
            )
        return entities


__all__ = ["ComponentExtractor", "EXTENDS", "HookExtractor", "component_props"]
