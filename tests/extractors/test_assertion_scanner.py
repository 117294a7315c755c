"""Tests for the scanner that reads expectations out of test code."""

from __future__ import annotations

import textwrap

from docsync.extractors.tests import TestAssertionScanner, normalise_value
from docsync.models import FileMeta


def _meta(path: str, language: str) -> FileMeta:
    return FileMeta(path=path, size=0, language=language, role="test", hash="")


def _scan(path: str, language: str, text: str, names):  # type: ignore[no-untyped-def]
    scanner = TestAssertionScanner()
    source = textwrap.dedent(text).lstrip("\n")
    return [
        (name, item.check, item.attribute, item.expected, item.location.line)
        for name, item in scanner.scan(_meta(path, language), source, names)
    ]


def test_javascript_props_calls_objects_and_equality() -> None:
    found = _scan(
        "src/app.test.tsx",
        "TypeScript",
        """
        import { Button } from './Button';
        import { formatDate } from '../utils/date';

        it('renders', () => {
          render(<Button label="Save" variant="primary" onPress={() => {}} />);
          expect(formatDate(new Date(), 'short', 'en')).toBe('x');
          const repo = new Account({ owner: 1, balance: 2 });
          expect(Account.tableName).toBe('accounts');
        });
        """,
        ["Button", "formatDate", "Account"],
    )

    assert found == [
        ("Button", "declares", "label", "*", 5),
        ("Button", "declares", "variant", "*", 5),
        ("Button", "declares", "onPress", "*", 5),
        ("formatDate", "arity", "arity", "3", 6),
        ("Account", "declares", "owner", "*", 7),
        ("Account", "declares", "balance", "*", 7),
        ("Account", "equals", "table", "accounts", 8),
    ]


def test_python_keyword_arguments_and_assert_equality() -> None:
    found = _scan(
        "tests/test_orders.py",
        "Python",
        """
        from app.models import Order
        from app.helpers import slugify


        def test_order():
            # slugify(1, 2, 3, 4) is not a call
            order = Order.create({"total": 5})
            assert slugify("Hello World", separator="-") == "hello-world"
            assert Order.status == 'open'
        """,
        ["Order", "slugify"],
    )

    assert found == [
        ("Order", "declares", "total", "*", 7),
        ("slugify", "declares", "separator", "*", 8),
        ("slugify", "arity", "arity", "2", 8),
        ("Order", "equals", "status", "open", 9),
    ]


def test_definitions_and_spread_calls_are_ignored() -> None:
    found = _scan(
        "src/helpers.test.ts",
        "TypeScript",
        """
        function formatDate(value) { return value; }
        const args = [1, 2];
        formatDate(...args);
        """,
        ["formatDate"],
    )

    assert found == []


def test_normalise_value() -> None:
    assert normalise_value("'users';") == "users"
    assert normalise_value('"a   b"') == "a b"
    assert normalise_value("42") == "42"
