"""Tests for the utility function extractor."""

from __future__ import annotations

from docsync.extractors.base import ExtractionContext
from docsync.extractors.utilities import UtilityExtractor


def _extract(repo_builder):  # type: ignore[no-untyped-def]
    return UtilityExtractor().extract(ExtractionContext(manifest=repo_builder.scan()))


def test_typescript_exports_are_documented(repo_builder) -> None:
    repo_builder.write(
        {
            "src/utils/date.ts": """
            export function formatDate(date: Date, pattern = 'short'): string {
              return pad(date.getDate());
            }

            function pad(value: number): string {
              return String(value).padStart(2, '0');
            }

            export const daysBetween = (start: Date, end: Date): number => {
              return 0;
            };

            const internal = () => null;
            """,
        }
    )

    result = _extract(repo_builder)
    by_name = {entity.identity: entity for entity in result.entities}

    assert [entity.identity for entity in result.entities] == ["formatDate", "daysBetween"]
    assert by_name["formatDate"].attributes == (
        ("date", "Date"),
        ("pattern", "any = 'short'"),
        ("returns", "string"),
        ("arity", "1..2"),
    )
    assert by_name["daysBetween"].attribute("returns") == "number"
    assert by_name["daysBetween"].attribute("arity") == "2"


def test_commonjs_exports(repo_builder) -> None:
    repo_builder.write(
        {
            "lib/strings.js": """
            function slugify(text, separator) {
              return text;
            }

            function unused() {}

            module.exports = { slugify };
            """,
        }
    )

    entities = _extract(repo_builder).entities

    assert [entity.identity for entity in entities] == ["slugify"]
    assert entities[0].attribute("arity") == "2"


def test_python_helpers_respect_dunder_all(repo_builder) -> None:
    repo_builder.write(
        {
            "app/helpers.py": """
            __all__ = ["slugify"]


            def slugify(text: str, separator: str = "-", *, lower: bool = True) -> str:
                return text


            def not_exported(value):
                return value
            """,
            "app/utils.py": """
            def chunk(items, size=10, *rest, **options):
                return items


            def _private():
                return None
            """,
        }
    )

    by_name = {entity.identity: entity for entity in _extract(repo_builder).entities}

    assert set(by_name) == {"slugify", "chunk"}
    assert by_name["slugify"].attributes == (
        ("text", "str"),
        ("separator", "str = '-'"),
        ("lower", "bool = True"),
        ("returns", "str"),
        ("arity", "1..3"),
    )
    assert by_name["chunk"].attribute("arity") == "1+"
    assert by_name["chunk"].attribute("*rest") == "any"
    assert by_name["chunk"].attribute("**options") == "any"


def test_python_syntax_error_is_reported_not_raised(repo_builder) -> None:
    repo_builder.write(
        {
            "app/utils.py": "def broken(:\n    pass\n",
            "app/helpers.py": "def fine():\n    return 1\n",
        }
    )

    result = _extract(repo_builder)

    assert [entity.identity for entity in result.entities] == ["fine"]
    assert len(result.errors) == 1
    assert result.errors[0].path == "app/utils.py"


def test_test_calls_are_attached_as_arity(repo_builder) -> None:
    repo_builder.write(
        {
            "app/helpers.py": "def slugify(text, separator='-'):\n    return text\n",
            "tests/test_helpers.py": """
            from app.helpers import slugify


            def test_slugify():
                assert slugify("Hello World", "-", True) == "hello-world"
            """,
        }
    )

    entity = _extract(repo_builder).entities[0]

    assert [(item.check, item.expected) for item in entity.test_assertions] == [("arity", "3")]
    assert entity.test_assertions[0].location.line == 5
