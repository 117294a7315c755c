"""Tests for managed markers and markdown linting."""

from __future__ import annotations

from docsync.postproc.lint import MarkdownLinter, escape_cell
from docsync.postproc.markers import Checkpoint, MarkerManager


def test_marker_manager_wraps_blocks() -> None:
    manager = MarkerManager()
    wrapped = manager.wrap("component:Button", "  Initial content\n")

    assert wrapped == (
        "<!-- docsync:begin:component:Button -->\nInitial content\n<!-- docsync:end:component:Button -->"
    )


def test_blocks_preserve_document_order_and_text() -> None:
    manager = MarkerManager()
    first = manager.wrap("screen:/home", "### /home")
    second = manager.wrap("screen:/settings", "### /settings")
    markdown = f"# Screens\n\n{first}\n\nfree text\n\n{second}\n"

    blocks = manager.blocks(markdown)

    assert blocks == [("screen:/home", first), ("screen:/settings", second)]


def test_blocks_skip_unterminated_and_duplicate_keys() -> None:
    manager = MarkerManager()
    good = manager.wrap("hook:useAuth", "auth")
    duplicate = manager.wrap("hook:useAuth", "again")
    markdown = "\n\n".join(["<!-- docsync:begin:hook:broken -->\nno end", good, duplicate])

    blocks = manager.blocks(markdown)

    assert blocks == [("hook:useAuth", good)]


def test_remark_is_wrapped_in_its_own_markers() -> None:
    remark = MarkerManager().remark("> **Test discrepancy** (`a.test.ts:3`): mismatch\n")

    assert remark == (
        "<!-- docsync:remark -->\n> **Test discrepancy** (`a.test.ts:3`): mismatch\n<!-- docsync:end-remark -->"
    )


def test_checkpoint_line_round_trip() -> None:
    manager = MarkerManager()
    checkpoint = Checkpoint(category="components", part="components-2", revision="abc+0123", snapshot="eJw=")

    text = manager.with_checkpoint("# Components\n", checkpoint)
    body, parsed = manager.split_checkpoint(text)

    assert text.endswith(manager.checkpoint_line(checkpoint) + "\n")
    assert parsed == checkpoint
    assert body == "# Components\n"


def test_revisions_with_spaces_and_comment_closers_survive() -> None:
    manager = MarkerManager()
    checkpoint = Checkpoint(category="todo", part="todo", revision="release 1 -->", snapshot="eJw=")

    line = manager.checkpoint_line(checkpoint)

    assert "release 1" not in line
    assert line.count("-->") == 1
    assert manager.parse_checkpoint(line) == checkpoint
    assert manager.split_checkpoint(manager.with_checkpoint("# TODO\n", checkpoint))[1] == checkpoint


def test_with_checkpoint_replaces_existing_marker() -> None:
    manager = MarkerManager()
    old = Checkpoint(category="todo", part="todo", revision="r1")
    new = Checkpoint(category="todo", part="todo", revision="r2")

    text = manager.with_checkpoint(manager.with_checkpoint("# TODO\n", old), new)

    assert text.count("docsync:checkpoint") == 1
    assert manager.split_checkpoint(text)[1] == new


def test_split_checkpoint_only_considers_last_line() -> None:
    manager = MarkerManager()
    line = manager.checkpoint_line(Checkpoint(category="todo", part="todo", revision="r1"))
    text = f"# TODO\n\n{line}\n\nTrailing prose\n"

    body, parsed = manager.split_checkpoint(text)

    assert parsed is None
    assert body == text


def test_parse_checkpoint_requires_core_fields() -> None:
    manager = MarkerManager()

    assert manager.parse_checkpoint("<!-- docsync:checkpoint category=todo part=todo -->") is None
    assert manager.parse_checkpoint("<!-- something else -->") is None


def test_linter_normalises_spacing_outside_code() -> None:
    linter = MarkdownLinter()
    markdown = "Intro  \r\n## Heading\n\n\n\nText\n```\n\n\ncode  \n```\n\n"

    result = linter.lint(markdown)

    assert result == "Intro\n\n## Heading\n\nText\n```\n\n\ncode\n```"


def test_escape_cell_flattens_and_escapes_pipes() -> None:
    assert escape_cell("a |\n b") == "a \\| b"
