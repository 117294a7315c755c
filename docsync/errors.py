"""Error taxonomy for synchronization runs."""

from __future__ import annotations


class DocSyncError(Exception):
    """Base class for recoverable synchronization failures."""


class ExtractionError(DocSyncError):
    """A source file could not be parsed; its entities are skipped."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class WriteFailure(DocSyncError):
    """A document part could not be persisted; its checkpoint stays put."""

    def __init__(self, part: str, reason: str) -> None:
        super().__init__(f"{part}: {reason}")
        self.part = part
        self.reason = reason


class UnreadablePart(DocSyncError):
    """A document part exists but could not be read; its checkpoint is kept."""

    def __init__(self, part: str, reason: str) -> None:
        super().__init__(f"{part}: {reason}")
        self.part = part
        self.reason = reason


class SizeGovernorError(DocSyncError):
    """A single entity block is larger than the size budget on its own."""

    def __init__(self, key: str, size: int, budget: int) -> None:
        super().__init__(f"block {key} needs {size} tokens, budget is {budget}")
        self.key = key
        self.size = size
        self.budget = budget


__all__ = ["DocSyncError", "ExtractionError", "SizeGovernorError", "UnreadablePart", "WriteFailure"]
