"""Tests for the entity differ."""

from __future__ import annotations

from docsync.differ import EntityDiffer, summarize
from docsync.models import ADD, MODIFY, REMOVE, UNCHANGED, SourceLocation, TestAssertion, make_entity


def _ops(changeset):  # type: ignore[no-untyped-def]
    return [(entry.key[1], entry.op) for entry in changeset]


def test_diff_orders_current_entities_then_removals() -> None:
    previous = [
        make_entity("component", "Button", {"label": "string"}, path="src/Button.tsx"),
        make_entity("component", "LegacyDashboard", {}, path="src/LegacyDashboard.tsx"),
        make_entity("component", "Card", {"title": "string"}, path="src/Card.tsx"),
    ]
    current = [
        make_entity("component", "UserProfile", {"user": "User"}, path="src/UserProfile.tsx"),
        make_entity("component", "Card", {"title": "string"}, path="src/Card.tsx"),
        make_entity("component", "Button", {"label": "string", "variant": "string"}, path="src/Button.tsx"),
    ]

    changeset = EntityDiffer().diff(previous, current)

    assert _ops(changeset) == [
        ("UserProfile", ADD),
        ("Card", UNCHANGED),
        ("Button", MODIFY),
        ("LegacyDashboard", REMOVE),
    ]
    assert summarize(changeset) == {ADD: 1, MODIFY: 1, REMOVE: 1, UNCHANGED: 1}
    removal = changeset[-1]
    assert removal.current is None
    assert removal.entity.identity == "LegacyDashboard"


def test_line_moves_are_not_modifications() -> None:
    before = make_entity("utility", "formatDate", {"arity": "1"}, path="src/utils/date.ts", line=3)
    after = make_entity("utility", "formatDate", {"arity": "1"}, path="src/utils/date.ts", line=40)

    changeset = EntityDiffer().diff([before], [after])

    assert _ops(changeset) == [("formatDate", UNCHANGED)]
    assert changeset[0].current is after


def test_new_test_assertion_is_a_modification() -> None:
    before = make_entity("hook", "useAuth", {"arity": "0"}, path="src/hooks/useAuth.ts")
    after = before.with_assertions(
        [TestAssertion("arity", "arity", "1", SourceLocation("src/hooks/useAuth.test.ts", 5))]
    )

    assert _ops(EntityDiffer().diff([before], [after])) == [("useAuth", MODIFY)]


def test_duplicate_keys_keep_first_occurrence() -> None:
    first = make_entity("screen", "/home", {"component": "Home"}, path="app/page.tsx")
    second = make_entity("screen", "/home", {"component": "Other"}, path="pages/index.tsx")

    changeset = EntityDiffer().diff([], [first, second])

    assert len(changeset) == 1
    assert changeset[0].current is first


def test_empty_inputs_produce_empty_changeset() -> None:
    assert EntityDiffer().diff([], []) == ()
