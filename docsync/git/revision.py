"""Revision identification and change detection against checkpoints."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import RepoManifest
from ..repo_scanner import manifest_fingerprint

_FINGERPRINT_LENGTH = 12
_DIRTY_SEPARATOR = "+"


@dataclass(frozen=True)
class ChangeSet:
    """Paths changed between a checkpoint revision and the working tree."""

    base: str
    changed_files: Sequence[str]

    def touches(self, patterns: Sequence[str]) -> bool:
        return any(pattern_matches(path, pattern) for path in self.changed_files for pattern in patterns)


class RevisionResolver:
    """Identifies the current source revision and what changed since a checkpoint.

    Revisions are opaque strings. Inside a git work tree the current revision is
    the ``HEAD`` commit; uncommitted edits add a ``+<fingerprint>`` suffix so a
    dirty tree never claims to be the clean commit. Outside git the revision is
    derived from the manifest content alone.
    """

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("revision")

    def current(self, repo_path: str, manifest: RepoManifest, *, ignore: Sequence[str] = ()) -> str:
        repo = Path(repo_path)
        fingerprint = manifest_fingerprint(manifest)[:_FINGERPRINT_LENGTH]
        if not (repo / ".git").exists():
            return f"worktree-{fingerprint}"
        try:
            head = self._run(["git", "rev-parse", "HEAD"], cwd=repo, capture_output=True).strip()
            dirty = self._dirty_paths(repo, ignore)
        except (OSError, subprocess.CalledProcessError) as exc:
            self.logger.debug("git revision lookup failed: %s", exc)
            return f"worktree-{fingerprint}"
        if not head:
            return f"worktree-{fingerprint}"
        if dirty:
            return f"{head}{_DIRTY_SEPARATOR}{fingerprint}"
        return head

    def changed_files(self, repo_path: str, since: str) -> Optional[ChangeSet]:
        """Return paths changed since ``since`` or ``None`` when that cannot be known."""
        repo = Path(repo_path)
        if not (repo / ".git").exists() or since.startswith("worktree-"):
            return None
        if _DIRTY_SEPARATOR in since:
            # The checkpoint reflected uncommitted edits that git cannot diff against.
            return None
        base = base_revision(since)
        try:
            output = self._run(
                ["git", "diff", "--name-only", f"{base}..HEAD"], cwd=repo, capture_output=True
            )
            files = [line.strip() for line in output.splitlines() if line.strip()]
            for path in self._dirty_paths(repo, ()):
                if path not in files:
                    files.append(path)
        except (OSError, subprocess.CalledProcessError) as exc:
            self.logger.debug("git diff since %s failed: %s", base, exc)
            return None
        return ChangeSet(base=base, changed_files=files)

    # ------------------------------------------------------------------
    # Internals

    def _dirty_paths(self, repo: Path, ignore: Sequence[str]) -> List[str]:
        status = self._run(["git", "status", "--porcelain", "--untracked-files=all"], cwd=repo, capture_output=True)
        paths: List[str] = []
        for line in status.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            path = stripped.split(maxsplit=1)[-1]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            path = path.strip('"')
            if any(pattern_matches(path, pattern) for pattern in ignore):
                continue
            paths.append(path)
        return paths

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def base_revision(revision: str) -> str:
    """Strip the dirty-tree suffix from a revision identifier."""
    return revision.split(_DIRTY_SEPARATOR, 1)[0]


def pattern_matches(path: str, pattern: str) -> bool:
    normalized = path.replace("\\", "/")
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return normalized == prefix or normalized.startswith(f"{prefix}/")
    if pattern.endswith("/"):
        return normalized.startswith(pattern) or f"/{pattern}" in f"/{normalized}"
    if pattern.startswith("**/"):
        suffix = pattern[3:]
        return normalized.endswith(suffix) or fnmatch(normalized, pattern) or fnmatch(normalized, suffix)
    if "/" in pattern or any(ch in pattern for ch in "*?["):
        name = normalized.rsplit("/", 1)[-1]
        return fnmatch(normalized, pattern) or ("/" not in pattern and fnmatch(name, pattern))
    if normalized == pattern:
        return True
    return normalized.endswith(f"/{pattern}")


__all__ = ["ChangeSet", "RevisionResolver", "base_revision", "pattern_matches"]
