"""Git helpers for revision detection."""

from .revision import ChangeSet, RevisionResolver, base_revision, pattern_matches

__all__ = ["ChangeSet", "RevisionResolver", "base_revision", "pattern_matches"]
