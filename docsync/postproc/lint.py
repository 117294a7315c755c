"""Linting utilities for rendered markdown blocks."""

from __future__ import annotations

from typing import List


class MarkdownLinter:
    """Normalizes line endings, heading spacing, blank runs and trailing space.

    Fenced code is copied through untouched apart from trailing whitespace.
    """

    def lint(self, markdown: str) -> str:
        normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
        cleaned: List[str] = []
        in_code = False
        previous_blank = False

        for line in normalized.split("\n"):
            stripped = line.rstrip()
            if stripped.startswith("```"):
                in_code = not in_code
                cleaned.append(stripped)
                previous_blank = False
                continue

            if not in_code:
                if stripped.startswith("#") and cleaned and cleaned[-1] != "" and not cleaned[-1].startswith("<!--"):
                    cleaned.append("")
                if not stripped:
                    if previous_blank or not cleaned:
                        continue
                    previous_blank = True
                    cleaned.append("")
                    continue

            cleaned.append(stripped)
            previous_blank = False

        while cleaned and cleaned[-1] == "":
            cleaned.pop()

        return "\n".join(cleaned)


def escape_cell(value: str) -> str:
    """Make ``value`` safe inside a single markdown table cell."""
    return " ".join(value.split()).replace("|", "\\|")


__all__ = ["MarkdownLinter", "escape_cell"]
