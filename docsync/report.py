"""Run summary for a synchronization pass."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

ADVANCED = "advanced"
UNCHANGED = "unchanged"
FAILED = "failed"
DELETED = "deleted"
PREVIEW = "preview"


@dataclass
class PartOutcome:
    """What happened to one physical part during a run."""

    category: str
    part: str
    status: str
    revision: Optional[str] = None
    reason: Optional[str] = None

    @property
    def advanced(self) -> bool:
        return self.status in {ADVANCED, UNCHANGED, DELETED}


@dataclass
class CategoryStats:
    category: str
    added: int = 0
    modified: int = 0
    removed: int = 0
    unchanged: int = 0
    discrepancies: int = 0
    reused_snapshot: bool = False


@dataclass
class SyncReport:
    """Which parts advanced their checkpoint and which did not (with reasons)."""

    root: str
    revision: str
    dry_run: bool = False
    parts: List[PartOutcome] = field(default_factory=list)
    categories: List[CategoryStats] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    extraction_errors: List[str] = field(default_factory=list)
    diffs: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> List[PartOutcome]:
        return [outcome for outcome in self.parts if outcome.status == FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed

    def record(self, outcome: PartOutcome) -> None:
        self.parts.append(outcome)

    def to_dict(self) -> Dict[str, object]:
        return {
            "root": self.root,
            "revision": self.revision,
            "dry_run": self.dry_run,
            "ok": self.ok,
            "parts": [asdict(outcome) for outcome in self.parts],
            "categories": [asdict(stats) for stats in self.categories],
            "warnings": list(self.warnings),
            "extraction_errors": list(self.extraction_errors),
        }

    def summary_lines(self) -> List[str]:
        lines: List[str] = []
        for outcome in self.parts:
            line = f"{outcome.part}: {outcome.status}"
            if outcome.revision and outcome.status != FAILED:
                line += f" @ {outcome.revision}"
            if outcome.reason:
                line += f" ({outcome.reason})"
            lines.append(line)
        for warning in self.warnings:
            lines.append(f"warning: {warning}")
        return lines

    def save(self, repo_path: Path) -> Path:
        output = repo_path / ".docsync" / "last_sync.json"
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
        return output


__all__ = [
    "ADVANCED",
    "CategoryStats",
    "DELETED",
    "FAILED",
    "PREVIEW",
    "PartOutcome",
    "SyncReport",
    "UNCHANGED",
]
