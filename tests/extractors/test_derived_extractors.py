"""Tests for the overview, known-bug and TODO extractors."""

from __future__ import annotations

from docsync.extractors.base import ExtractionContext
from docsync.extractors.comments import KnownBugExtractor, TodoExtractor, iter_marker_comments
from docsync.extractors.overview import OverviewExtractor, module_of
from docsync.models import Discrepancy, FileMeta, Findings, make_entity


def test_overview_summarises_top_level_modules(repo_builder) -> None:
    repo_builder.write(
        {
            "src/components/Button.tsx": "export const Button = () => null;\n",
            "src/utils/date.ts": "export function formatDate() {}\n",
            "tests/test_app.py": "def test_ok():\n    assert True\n",
            "package.json": "{}\n",
        }
    )
    findings = Findings(
        entities={
            "components": [make_entity("component", "Button", {}, path="src/components/Button.tsx")],
            "utilities": [make_entity("utility", "formatDate", {}, path="src/utils/date.ts")],
        }
    )

    result = OverviewExtractor().extract(ExtractionContext(manifest=repo_builder.scan(), findings=findings))

    assert [entity.identity for entity in result.entities] == ["src", "tests", "(root)"]
    src = result.entities[0]
    assert src.attributes == (
        ("files", "2"),
        ("languages", "TypeScript"),
        ("roles", "src"),
        ("components", "1"),
        ("utilities", "1"),
    )
    root = result.entities[2]
    assert root.attribute("languages") == "JSON"
    assert root.location.path == ""
    assert module_of("README.md") == "(root)"


def test_known_bugs_combine_discrepancies_and_comments(repo_builder) -> None:
    repo_builder.write(
        {
            "src/api.ts": "// FIXME: retries are not capped\nexport const call = () => null; // TODO: add caching\n",
            "server/db.py": "# BUG(db): pool leaks on timeout\n",
        }
    )
    discrepancy = Discrepancy(
        kind="component",
        identity="Button",
        check="declares",
        attribute="variant",
        test_location="src/Button.test.tsx:4",
        expected="*",
        actual=None,
        description="test passes `variant` but `Button` does not declare it",
    )
    findings = Findings(discrepancies={"components": [discrepancy, discrepancy]})

    result = KnownBugExtractor().extract(ExtractionContext(manifest=repo_builder.scan(), findings=findings))

    identities = [entity.identity for entity in result.entities]
    assert identities[0] == "component:Button.variant (src/Button.test.tsx)"
    assert len(identities) == 3
    first = result.entities[0]
    assert first.attribute("category") == "components"
    assert first.attribute("test") == "src/Button.test.tsx:4"
    assert first.location.path == "src/Button.test.tsx"
    texts = [(entity.attribute("tag"), entity.attribute("text")) for entity in result.entities[1:]]
    assert texts == [("BUG", "pool leaks on timeout"), ("FIXME", "retries are not capped")]
    assert result.entities[2].identity.startswith("src/api.ts#")


def test_todo_extractor_collects_todo_and_hack(repo_builder) -> None:
    repo_builder.write(
        {
            "src/api.ts": "// TODO: add caching\n/* HACK: works around sdk bug */\n// TODO: add caching\n",
        }
    )

    result = TodoExtractor().extract(ExtractionContext(manifest=repo_builder.scan()))

    assert [entity.attribute("tag") for entity in result.entities] == ["TODO", "HACK", "TODO"]
    assert result.entities[1].attribute("text") == "works around sdk bug"
    first, _, third = result.entities
    assert third.identity == f"{first.identity}-2"
    assert [entity.location.line for entity in result.entities] == [1, 2, 3]


def test_comment_identity_is_stable_when_lines_move(repo_builder) -> None:
    repo_builder.write({"src/api.ts": "// TODO: add caching\n"})
    before = TodoExtractor().extract(ExtractionContext(manifest=repo_builder.scan())).entities[0]

    repo_builder.write({"src/api.ts": "const x = 1;\n\n// TODO: add caching\n"})
    after = TodoExtractor().extract(ExtractionContext(manifest=repo_builder.scan())).entities[0]

    assert before.identity == after.identity
    assert before.fingerprint() == after.fingerprint()


def test_iter_marker_comments_handles_languages() -> None:
    meta = FileMeta(path="db/init.sql", size=0, language="SQL", hash="", role="src")
    text = "-- TODO(ops): add index\nSELECT 1; -- XXX slow\nname = 'TODO list'\n"

    assert list(iter_marker_comments(meta, text)) == [
        ("TODO", "add index", 1),
        ("XXX", "slow", 2),
    ]
