"""Core data models shared across docsync components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass
class FileMeta:
    """Metadata for an individual repository file."""

    path: str
    size: int
    language: Optional[str]
    role: str
    hash: str


@dataclass
class RepoManifest:
    """Normalized view of the source tree for extractors."""

    root: str
    files: List[FileMeta]


# ----------------------------------------------------------------------
# Document categories

CATEGORY_ORDER: Tuple[str, ...] = (
    "screens",
    "configuration",
    "components",
    "utilities",
    "database",
    "overview",
    "known_bugs",
    "todo",
)

CATEGORY_TITLES: Dict[str, str] = {
    "screens": "Screens",
    "configuration": "Configuration",
    "components": "Components",
    "utilities": "Utilities",
    "database": "Database",
    "overview": "Overview",
    "known_bugs": "Known Bugs",
    "todo": "TODO",
}

CATEGORY_KINDS: Dict[str, Tuple[str, ...]] = {
    "screens": ("screen",),
    "configuration": ("config-key",),
    "components": ("component", "hook"),
    "utilities": ("utility",),
    "database": ("schema-model",),
    "overview": ("module",),
    "known_bugs": ("bug",),
    "todo": ("task",),
}

# Categories whose entities are computed from other categories' findings.
DERIVED_CATEGORIES = frozenset({"overview", "known_bugs", "todo"})


def category_sort_key(category: str) -> int:
    try:
        return CATEGORY_ORDER.index(category)
    except ValueError:
        return len(CATEGORY_ORDER)


# ----------------------------------------------------------------------
# Entities


@dataclass(frozen=True)
class SourceLocation:
    """File and line reference for an extracted construct."""

    path: str
    line: int = 0

    def __str__(self) -> str:
        return f"{self.path}:{self.line}" if self.line else self.path


@dataclass(frozen=True)
class TestAssertion:
    """Expected behaviour observed in test code for one entity attribute."""

    __test__ = False

    check: str
    attribute: str
    expected: str
    location: SourceLocation
    statement: str = ""


@dataclass(frozen=True)
class Entity:
    """Immutable snapshot of a documentable unit extracted from source."""

    kind: str
    identity: str
    attributes: Tuple[Tuple[str, str], ...] = ()
    location: SourceLocation = field(default_factory=lambda: SourceLocation(""))
    test_assertions: Tuple[TestAssertion, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return (self.kind, self.identity)

    @property
    def block_key(self) -> str:
        return f"{self.kind}:{self.identity}"

    def attribute(self, name: str) -> Optional[str]:
        for attr_name, value in self.attributes:
            if attr_name == name:
                return value
        return None

    def attribute_names(self) -> List[str]:
        return [name for name, _ in self.attributes]

    def fingerprint(self) -> Tuple[Any, ...]:
        """Facts compared by the differ.

        The entity's own line is left out; test assertion locations, line
        numbers included, are kept because remarks print them.
        """
        return (self.attributes, self.test_assertions, self.location.path)

    def with_assertions(self, assertions: Sequence[TestAssertion]) -> "Entity":
        return replace(self, test_assertions=tuple(assertions))


def make_entity(
    kind: str,
    identity: str,
    attributes: Sequence[Tuple[str, str]] | Dict[str, str] = (),
    *,
    path: str = "",
    line: int = 0,
) -> Entity:
    """Convenience constructor normalising attributes into string pairs."""
    items = attributes.items() if isinstance(attributes, dict) else attributes
    pairs = tuple((str(name), str(value)) for name, value in items)
    return Entity(kind=kind, identity=identity, attributes=pairs, location=SourceLocation(path, line))


# ----------------------------------------------------------------------
# Changesets and discrepancies

ADD = "add"
MODIFY = "modify"
REMOVE = "remove"
UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Discrepancy:
    """Disagreement between a test expectation and extracted implementation facts."""

    kind: str
    identity: str
    check: str
    attribute: str
    test_location: str
    expected: str
    actual: Optional[str]
    description: str


@dataclass(frozen=True)
class ChangeEntry:
    """One row of a changeset produced by the differ."""

    key: Tuple[str, str]
    op: str
    previous: Optional[Entity]
    current: Optional[Entity]
    discrepancies: Tuple[Discrepancy, ...] = ()

    @property
    def entity(self) -> Entity:
        entity = self.current if self.current is not None else self.previous
        assert entity is not None
        return entity


@dataclass
class Findings:
    """Read-only record of what earlier categories produced during a run."""

    entities: Dict[str, List[Entity]] = field(default_factory=dict)
    discrepancies: Dict[str, List[Discrepancy]] = field(default_factory=dict)

    def all_entities(self) -> List[Entity]:
        result: List[Entity] = []
        for category in sorted(self.entities, key=category_sort_key):
            result.extend(self.entities[category])
        return result
