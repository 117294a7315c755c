"""Reconciliation of test expectations with extracted implementation facts."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .extractors.components import EXTENDS
from .extractors.source import parse_arity
from .extractors.tests import ARITY, DECLARES, EQUALS, normalise_value
from .logging import get_logger
from .models import REMOVE, ChangeEntry, Discrepancy, Entity, TestAssertion

logger = get_logger("reconciler")


class Reconciler:
    """Annotates changeset entries whose tests disagree with the implementation.

    Neither side is preferred: entity attributes are left exactly as
    extracted and each disagreement becomes a :class:`Discrepancy` that the
    renderer shows next to the entity.
    """

    def reconcile(self, changeset: Sequence[ChangeEntry]) -> Tuple[ChangeEntry, ...]:
        annotated: List[ChangeEntry] = []
        for entry in changeset:
            if entry.op == REMOVE or entry.current is None:
                annotated.append(entry)
                continue
            discrepancies = self.check(entry.current)
            annotated.append(replace(entry, discrepancies=discrepancies) if discrepancies else entry)
        return tuple(annotated)

    def check(self, entity: Entity) -> Tuple[Discrepancy, ...]:
        """Return the discrepancies between ``entity`` and its test assertions."""
        found: List[Discrepancy] = []
        seen = set()
        for assertion in entity.test_assertions:
            discrepancy = self._check_one(entity, assertion)
            if discrepancy is None:
                continue
            marker = (discrepancy.test_location, discrepancy.description)
            if marker in seen:
                continue
            seen.add(marker)
            found.append(discrepancy)
        if found:
            logger.debug("%s %s has %d test discrepancies", entity.kind, entity.identity, len(found))
        return tuple(found)

    def _check_one(self, entity: Entity, assertion: TestAssertion) -> Optional[Discrepancy]:
        if assertion.check == DECLARES:
            if _declares(entity, assertion.attribute):
                return None
            description = (
                f"test passes `{assertion.attribute}` but `{entity.identity}` does not declare it"
            )
            return self._discrepancy(entity, assertion, None, description)

        if assertion.check == ARITY or (assertion.check == EQUALS and assertion.attribute == "arity"):
            label = entity.attribute("arity")
            if label is None:
                return None
            bounds = parse_arity(label)
            try:
                count = int(assertion.expected)
            except ValueError:
                return None
            if bounds is None:
                return None
            low, high = bounds
            if count >= low and (high is None or count <= high):
                return None
            noun = "argument" if count == 1 else "arguments"
            description = (
                f"test calls `{entity.identity}` with {count} {noun} but it accepts {label}"
            )
            return self._discrepancy(entity, assertion, label, description)

        if assertion.check == EQUALS:
            actual = entity.attribute(assertion.attribute)
            if actual is None:
                description = (
                    f"test expects `{assertion.attribute}` to be `{assertion.expected}` "
                    f"but `{entity.identity}` has no `{assertion.attribute}`"
                )
                return self._discrepancy(entity, assertion, None, description)
            if normalise_value(actual) == normalise_value(assertion.expected):
                return None
            description = (
                f"test expects `{assertion.attribute}` to be `{assertion.expected}` "
                f"but the implementation has `{actual}`"
            )
            return self._discrepancy(entity, assertion, actual, description)

        logger.debug("Unknown assertion check %r ignored", assertion.check)
        return None

    @staticmethod
    def _discrepancy(
        entity: Entity, assertion: TestAssertion, actual: Optional[str], description: str
    ) -> Discrepancy:
        return Discrepancy(
            kind=entity.kind,
            identity=entity.identity,
            check=assertion.check,
            attribute=assertion.attribute,
            test_location=str(assertion.location),
            expected=assertion.expected,
            actual=actual,
            description=description,
        )


def _declares(entity: Entity, name: str) -> bool:
    """Whether ``entity`` accepts an attribute called ``name``.

    A ``...rest`` or ``**kwargs`` parameter, or a props type inheriting
    from something not resolved here, accepts any name.
    """
    names = entity.attribute_names()
    if name in names or EXTENDS in names:
        return True
    if any(item.startswith(("...", "**")) for item in names):
        return True
    # Screens list their props in a single comma-separated attribute.
    listed = entity.attribute("props")
    if listed is None:
        return False
    items = [item.strip() for item in listed.split(",")]
    return name in items or any(item.startswith("...") for item in items)


def collect_discrepancies(changeset: Sequence[ChangeEntry]) -> List[Discrepancy]:
    found: List[Discrepancy] = []
    for entry in changeset:
        found.extend(entry.discrepancies)
    return found


__all__ = ["Reconciler", "collect_discrepancies"]
