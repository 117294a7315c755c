"""Markdown rendering and merge of entity blocks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .models import CATEGORY_TITLES, REMOVE, UNCHANGED, ChangeEntry, Discrepancy, Entity
from .postproc.lint import MarkdownLinter, escape_cell
from .postproc.markers import MarkerManager

EMPTY_CATEGORY_TEXT = "_No entries._"
_HEADING_LIMIT = 80

_KIND_LABELS = {
    "screen": "Screen",
    "config-key": "Config key",
    "component": "Component",
    "hook": "Hook",
    "utility": "Utility",
    "schema-model": "Schema model",
    "module": "Module",
    "bug": "Known bug",
    "task": "Task",
}


@dataclass(frozen=True)
class RenderedBlock:
    """One entity block ready to be placed in a document part."""

    key: str
    entity: Entity
    text: str


def compose_part(title: str, block_texts: Sequence[str], *, index: int = 1, total: int = 1) -> str:
    """Assemble a part body (without checkpoint line) from its blocks."""
    sections = [f"# {title}"]
    if total > 1:
        sections.append(f"_Part {index} of {total}._")
    sections.append("\n\n".join(block_texts) if block_texts else EMPTY_CATEGORY_TEXT)
    return "\n\n".join(sections) + "\n"


def category_title(category: str) -> str:
    return CATEGORY_TITLES.get(category, category.replace("_", " ").title())


class DocumentRenderer:
    """Turns a changeset plus the prior blocks of a document into new blocks.

    Only blocks that changed are re-rendered: unchanged entities keep the text
    already on disk byte for byte, removed entities lose their block and new
    entities are appended.
    """

    def __init__(self, markers: MarkerManager | None = None, linter: MarkdownLinter | None = None) -> None:
        self.markers = markers or MarkerManager()
        self.linter = linter or MarkdownLinter()

    def merge(
        self, changeset: Sequence[ChangeEntry], prior_blocks: Sequence[Tuple[str, str]]
    ) -> List[RenderedBlock]:
        prior: Dict[str, str] = {}
        for key, text in prior_blocks:
            prior.setdefault(key, text)

        entries = {entry.entity.block_key: entry for entry in changeset if entry.op != REMOVE}
        source_order = list(entries)
        retained = [key for key in prior if key in entries]
        retained_set = set(retained)
        changed = any(entry.op != UNCHANGED for entry in changeset)

        in_source_order = retained == [key for key in source_order if key in retained_set]
        if not changed or in_source_order:
            order = retained + [key for key in source_order if key not in retained_set]
        else:
            order = source_order

        blocks: List[RenderedBlock] = []
        for key in order:
            entry = entries[key]
            if entry.op == UNCHANGED and key in prior:
                text = prior[key]
            else:
                text = self.render_block(entry.entity, entry.discrepancies)
            blocks.append(RenderedBlock(key=key, entity=entry.entity, text=text))
        return blocks

    def render_block(self, entity: Entity, discrepancies: Sequence[Discrepancy] = ()) -> str:
        lines: List[str] = [f"## {_heading(entity)}", ""]
        lines.append(f"- **Kind:** {_KIND_LABELS.get(entity.kind, entity.kind)}")
        if entity.location.path:
            lines.append(f"- **Source:** `{entity.location.path}`")
        test_files = sorted({assertion.location.path for assertion in entity.test_assertions})
        if test_files:
            lines.append("- **Tested in:** " + ", ".join(f"`{path}`" for path in test_files))

        lines.append("")
        if entity.attributes:
            lines.append("| Attribute | Value |")
            lines.append("| --- | --- |")
            for name, value in entity.attributes:
                lines.append(f"| `{escape_cell(name)}` | {_format_value(value)} |")
        else:
            lines.append("_No attributes._")

        for discrepancy in discrepancies:
            lines.append("")
            lines.append(
                self.markers.remark(
                    f"> **Test discrepancy** (`{discrepancy.test_location}`): {discrepancy.description}"
                )
            )

        body = self.linter.lint("\n".join(lines))
        return self.markers.wrap(entity.block_key, body)


def _heading(entity: Entity) -> str:
    if entity.kind in {"bug", "task"}:
        text = entity.attribute("text") or entity.identity
        if len(text) > _HEADING_LIMIT:
            text = text[: _HEADING_LIMIT - 3].rstrip() + "..."
        tag = entity.attribute("tag")
        return f"{tag}: {text}" if tag else text
    return entity.identity


def _format_value(value: str) -> str:
    if not value.strip():
        return "_(empty)_"
    cell = escape_cell(value)
    if "`" in cell:
        return cell
    return f"`{cell}`"


__all__ = [
    "DocumentRenderer",
    "EMPTY_CATEGORY_TEXT",
    "RenderedBlock",
    "category_title",
    "compose_part",
]
