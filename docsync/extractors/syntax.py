"""Tree-sitter parsing of JavaScript and TypeScript sources."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from .source import arity_label

_GRAMMARS: Dict[str, Callable[[], object]] = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}
_TYPESCRIPT_SUFFIXES = frozenset({".ts", ".mts", ".cts"})

FUNCTION_DECLARATIONS = frozenset({"function_declaration", "generator_function_declaration"})
CLASS_DECLARATIONS = frozenset({"class_declaration", "abstract_class_declaration", "class"})
_FUNCTION_VALUES = frozenset({"arrow_function", "function_expression", "function", "generator_function"})
_WRAPPERS = frozenset({"memo", "forwardRef", "React.memo", "React.forwardRef"})

_languages: Dict[str, Language] = {}
# Parsers are not safe to share; extractors run on a thread pool.
_local = threading.local()


@dataclass(frozen=True)
class Param:
    """A single parameter of a function signature."""

    name: str
    type: Optional[str] = None
    default: Optional[str] = None
    optional: bool = False
    rest: bool = False
    destructured: Tuple[Tuple[str, Optional[str]], ...] = ()
    remainder: Optional[str] = None
    annotation: Optional[Node] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TypeShape:
    """Members of an interface or object type.

    ``extends`` lists the types whose members are inherited but not known
    here; a shape with any of them accepts names beyond ``members``.
    """

    members: Tuple[Tuple[str, str, bool], ...] = ()
    extends: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Declaration:
    """A named top-level function, class or variable."""

    name: str
    node: Node
    statement: Node
    exported: bool = False
    default: bool = False


@dataclass
class SourceTree:
    path: str
    source: bytes
    lines: List[str]
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def line_text(self, node: Node) -> str:
        row = node.start_point[0]
        return self.lines[row].strip() if row < len(self.lines) else ""


def grammar_for(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix == ".tsx":
        return "tsx"
    if suffix in _TYPESCRIPT_SUFFIXES:
        return "typescript"
    return "javascript"


def parse_source(path: str, text: str) -> SourceTree:
    """Parse ``text`` with the grammar matching ``path``'s extension.

    Tree-sitter recovers from syntax errors, so a broken file still yields
    whatever declarations parse cleanly.
    """
    source = text.encode("utf-8")
    tree = _parser(grammar_for(path)).parse(source)
    return SourceTree(path=path, source=source, lines=text.splitlines(), tree=tree)


def _language(grammar: str) -> Language:
    language = _languages.get(grammar)
    if language is None:
        language = Language(_GRAMMARS[grammar]())
        _languages[grammar] = language
    return language


def _parser(grammar: str) -> Parser:
    parsers: Optional[Dict[str, Parser]] = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = {}
        _local.parsers = parsers
    parser = parsers.get(grammar)
    if parser is None:
        parser = Parser(_language(grammar))
        parsers[grammar] = parser
    return parser


def line_of(node: Node) -> int:
    return node.start_point[0] + 1


def named(node: Optional[Node]) -> List[Node]:
    """Named children of ``node`` without comments."""
    if node is None:
        return []
    return [child for child in node.named_children if child.type != "comment"]


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and its descendants in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def squash(text: str) -> str:
    return " ".join(text.split()).rstrip(";,").strip()


def string_value(tree: SourceTree, node: Optional[Node]) -> Optional[str]:
    if node is None or node.type != "string":
        return None
    return tree.text(node)[1:-1]


# ----------------------------------------------------------------------
# Declarations


def top_level_declarations(tree: SourceTree) -> Iterator[Declaration]:
    for statement in named(tree.root):
        exported = statement.type == "export_statement"
        target = statement.child_by_field_name("declaration") if exported else statement
        if target is None and exported:
            # ``export default function Name() {}`` may parse as a named expression.
            target = statement.child_by_field_name("value")
        if target is None:
            continue
        default = exported and any(child.type == "default" for child in statement.children)
        yield from _declared(tree, target, statement, exported, default)


def _declared(
    tree: SourceTree, node: Node, statement: Node, exported: bool, default: bool
) -> Iterator[Declaration]:
    if node.type in FUNCTION_DECLARATIONS or node.type in CLASS_DECLARATIONS or node.type in _FUNCTION_VALUES:
        name = node.child_by_field_name("name")
        if name is not None:
            yield Declaration(tree.text(name), node, statement, exported, default)
    elif node.type in {"lexical_declaration", "variable_declaration"}:
        for declarator in named(node):
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is None or name.type != "identifier" or declarator.child_by_field_name("value") is None:
                continue
            yield Declaration(tree.text(name), declarator, statement, exported, default)


def default_export_name(tree: SourceTree) -> Optional[Tuple[str, Node]]:
    """Return ``(name, statement)`` for ``export default Name`` (or ``memo(Name)``)."""
    for statement in named(tree.root):
        if statement.type != "export_statement":
            continue
        value = statement.child_by_field_name("value")
        while value is not None and value.type == "call_expression":
            if tree.text(value.child_by_field_name("function")) not in _WRAPPERS:
                break
            arguments = named(value.child_by_field_name("arguments"))
            value = arguments[0] if arguments else None
        if value is not None and value.type == "identifier":
            return tree.text(value), statement
    return None


def function_value(tree: SourceTree, node: Node) -> Optional[Node]:
    """Return the function ``node`` defines, looking through ``memo``/``forwardRef``."""
    if node.type in FUNCTION_DECLARATIONS or node.type in _FUNCTION_VALUES:
        return node
    if node.type != "variable_declarator":
        return None
    value = node.child_by_field_name("value")
    while value is not None and value.type == "call_expression":
        if tree.text(value.child_by_field_name("function")) not in _WRAPPERS:
            return None
        arguments = named(value.child_by_field_name("arguments"))
        value = arguments[0] if arguments else None
    if value is not None and value.type in _FUNCTION_VALUES:
        return value
    return None


def return_type(tree: SourceTree, function: Node) -> Optional[str]:
    return annotation_text(tree, function.child_by_field_name("return_type"))


def annotation_text(tree: SourceTree, annotation: Optional[Node]) -> Optional[str]:
    """Text of a ``: Type`` annotation without the colon."""
    inner = named(annotation)
    if not inner:
        return None
    return squash(tree.text(inner[0])) or None


def annotated_type(annotation: Optional[Node]) -> Optional[Node]:
    inner = named(annotation)
    return inner[0] if inner else None


# ----------------------------------------------------------------------
# Parameters


def parameters(tree: SourceTree, function: Node) -> List[Param]:
    single = function.child_by_field_name("parameter")
    if single is not None:
        return [Param(name=tree.text(single))]
    params: List[Param] = []
    for child in named(function.child_by_field_name("parameters")):
        param = _param(tree, child)
        if param is not None:
            params.append(param)
    return params


def _param(tree: SourceTree, node: Node) -> Optional[Param]:
    optional = False
    annotation: Optional[Node] = None
    default: Optional[str] = None
    if node.type in {"required_parameter", "optional_parameter"}:
        optional = node.type == "optional_parameter"
        annotation = node.child_by_field_name("type")
        value = node.child_by_field_name("value")
        default = tree.text(value) if value is not None else None
        pattern = node.child_by_field_name("pattern")
        if pattern is None:
            return None
        node = pattern
    if node.type == "assignment_pattern":
        default = tree.text(node.child_by_field_name("right")) or None
        left = node.child_by_field_name("left")
        if left is None:
            return None
        node = left
    rest = node.type == "rest_pattern"
    if rest:
        inner = named(node)
        if not inner:
            return None
        node = inner[0]

    type_text = annotation_text(tree, annotation)
    type_node = annotated_type(annotation)
    if node.type == "object_pattern":
        destructured, remainder = _destructured(tree, node)
        return Param(
            name="props",
            type=type_text,
            default=default,
            rest=rest,
            destructured=destructured,
            remainder=remainder,
            annotation=type_node,
        )
    if node.type == "array_pattern":
        return Param(name="items", type=type_text, default=default, rest=rest, annotation=type_node)
    if node.type != "identifier":
        return None
    return Param(
        name=tree.text(node),
        type=type_text,
        default=default,
        optional=optional,
        rest=rest,
        annotation=type_node,
    )


def _destructured(
    tree: SourceTree, pattern: Node
) -> Tuple[Tuple[Tuple[str, Optional[str]], ...], Optional[str]]:
    names: List[Tuple[str, Optional[str]]] = []
    remainder: Optional[str] = None
    for child in named(pattern):
        if child.type == "shorthand_property_identifier_pattern":
            names.append((tree.text(child), None))
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            right = child.child_by_field_name("right")
            if left is not None and left.type == "shorthand_property_identifier_pattern":
                names.append((tree.text(left), tree.text(right) if right is not None else None))
        elif child.type == "pair_pattern":
            key = child.child_by_field_name("key")
            value = child.child_by_field_name("value")
            default = None
            if value is not None and value.type == "assignment_pattern":
                default = tree.text(value.child_by_field_name("right")) or None
            if key is not None and key.type in {"property_identifier", "identifier"}:
                names.append((tree.text(key), default))
        elif child.type == "rest_pattern":
            inner = named(child)
            remainder = tree.text(inner[0]) if inner else "rest"
    return tuple(names), remainder


def js_param_attributes(params: Sequence[Param]) -> Tuple[List[Tuple[str, str]], str]:
    """Return ``(name, description)`` pairs and the arity label for JS params."""
    attributes: List[Tuple[str, str]] = []
    required = 0
    maximum: Optional[int] = 0
    for param in params:
        label = f"...{param.name}" if param.rest else param.name
        value = param.type or "any"
        if param.default is not None:
            value = f"{value} = {param.default}"
        elif param.optional:
            value = f"{value} (optional)"
        attributes.append((label, squash(value)))
        if param.rest:
            maximum = None
            continue
        if maximum is not None:
            maximum += 1
        if param.default is None and not param.optional:
            required += 1
    return attributes, arity_label(required, maximum)


# ----------------------------------------------------------------------
# Types


def type_shape(tree: SourceTree, node: Optional[Node], seen: Tuple[str, ...] = ()) -> Optional[TypeShape]:
    """Resolve a props type to its members.

    Named types are looked up among the file's own declarations; a name
    that is not declared here becomes an ``extends`` entry.
    """
    if node is None:
        return None
    if node.type in {"object_type", "interface_body"}:
        return TypeShape(members=tuple(_members(tree, node)))
    if node.type == "parenthesized_type":
        inner = named(node)
        return type_shape(tree, inner[0], seen) if inner else None
    if node.type == "type_identifier":
        name = tree.text(node)
        declared = None if name in seen else _find_type(tree, name, seen + (name,))
        return declared if declared is not None else TypeShape(extends=(name,))
    if node.type == "intersection_type":
        members: List[Tuple[str, str, bool]] = []
        extends: List[str] = []
        for part in named(node):
            shape = type_shape(tree, part, seen)
            if shape is None:
                extends.append(squash(tree.text(part)))
                continue
            members.extend(shape.members)
            extends.extend(shape.extends)
        return TypeShape(members=tuple(members), extends=tuple(extends))
    return TypeShape(extends=(squash(tree.text(node)),))


def _find_type(tree: SourceTree, name: str, seen: Tuple[str, ...]) -> Optional[TypeShape]:
    for statement in named(tree.root):
        node = statement.child_by_field_name("declaration") if statement.type == "export_statement" else statement
        if node is None or tree.text(node.child_by_field_name("name")) != name:
            continue
        if node.type == "interface_declaration":
            extends: List[str] = []
            for child in node.children:
                if child.type == "extends_type_clause":
                    extends.extend(squash(tree.text(item)) for item in named(child))
            members = _members(tree, node.child_by_field_name("body"))
            return TypeShape(members=tuple(members), extends=tuple(extends))
        if node.type == "type_alias_declaration":
            return type_shape(tree, node.child_by_field_name("value"), seen)
    return None


def _members(tree: SourceTree, body: Optional[Node]) -> List[Tuple[str, str, bool]]:
    members: List[Tuple[str, str, bool]] = []
    for child in named(body):
        if child.type not in {"property_signature", "method_signature"}:
            continue
        name = _property_name(tree, child.child_by_field_name("name"))
        if name is None:
            continue
        optional = any(token.type == "?" for token in child.children)
        if child.type == "method_signature":
            params = squash(tree.text(child.child_by_field_name("parameters")))
            returns = annotation_text(tree, child.child_by_field_name("return_type")) or "void"
            members.append((name, f"{params} => {returns}", optional))
        else:
            type_text = annotation_text(tree, child.child_by_field_name("type")) or "any"
            members.append((name, type_text, optional))
    return members


def _property_name(tree: SourceTree, node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return string_value(tree, node)
    if node.type in {"property_identifier", "identifier"}:
        return tree.text(node)
    return None


def declared_type(tree: SourceTree, declarator: Node) -> Optional[Node]:
    """Return the props type argument of ``const X: React.FC<Props> = ...``."""
    annotated = annotated_type(declarator.child_by_field_name("type"))
    if annotated is None or annotated.type != "generic_type":
        return None
    for child in named(annotated):
        if child.type == "type_arguments":
            arguments = named(child)
            return arguments[0] if arguments else None
    return None


def class_props_type(tree: SourceTree, node: Node) -> Optional[Tuple[str, Optional[Node]]]:
    """Return ``(base class, props type)`` for ``class X extends Component<Props>``."""
    heritage = next((child for child in node.children if child.type == "class_heritage"), None)
    if heritage is None:
        return None
    clause = next((child for child in heritage.children if child.type == "extends_clause"), heritage)
    value = clause.child_by_field_name("value")
    if value is None:
        candidates = named(clause)
        value = candidates[0] if candidates else None
    if value is None:
        return None
    arguments = named(clause.child_by_field_name("type_arguments"))
    return tree.text(value), arguments[0] if arguments else None


@dataclass(frozen=True)
class Decorator:
    name: str
    arguments: Tuple[Node, ...] = ()


def decorators(tree: SourceTree, *owners: Node) -> List[Decorator]:
    """Decorators attached directly to any of ``owners``."""
    found: List[Decorator] = []
    for owner in owners:
        for child in owner.children:
            if child.type == "decorator":
                found.append(read_decorator(tree, child))
    return found


def read_decorator(tree: SourceTree, node: Node) -> Decorator:
    inner = named(node)
    if not inner:
        return Decorator(name="")
    target = inner[0]
    if target.type == "call_expression":
        arguments = tuple(named(target.child_by_field_name("arguments")))
        return Decorator(name=tree.text(target.child_by_field_name("function")), arguments=arguments)
    return Decorator(name=tree.text(target))


__all__ = [
    "CLASS_DECLARATIONS",
    "Declaration",
    "Decorator",
    "FUNCTION_DECLARATIONS",
    "Param",
    "SourceTree",
    "TypeShape",
    "annotation_text",
    "class_props_type",
    "declared_type",
    "decorators",
    "default_export_name",
    "function_value",
    "grammar_for",
    "js_param_attributes",
    "line_of",
    "named",
    "parameters",
    "parse_source",
    "read_decorator",
    "return_type",
    "string_value",
    "top_level_declarations",
    "type_shape",
    "walk",
]
