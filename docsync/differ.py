"""Changeset computation between documented and extracted entities."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .models import ADD, MODIFY, REMOVE, UNCHANGED, ChangeEntry, Entity


class EntityDiffer:
    """Joins two entity snapshots on ``(kind, identity)``."""

    def diff(self, previous: Sequence[Entity], current: Sequence[Entity]) -> Tuple[ChangeEntry, ...]:
        """Return the ordered changeset turning ``previous`` into ``current``.

        Entries for entities present now come first, in ``current`` order;
        removals follow in ``previous`` order. Only the first occurrence of a
        duplicated key is considered on either side.
        """
        previous_by_key = _first_by_key(previous)
        current_by_key = _first_by_key(current)

        entries: List[ChangeEntry] = []
        for key, entity in current_by_key.items():
            before = previous_by_key.get(key)
            if before is None:
                entries.append(ChangeEntry(key=key, op=ADD, previous=None, current=entity))
            elif before.fingerprint() == entity.fingerprint():
                entries.append(ChangeEntry(key=key, op=UNCHANGED, previous=before, current=entity))
            else:
                entries.append(ChangeEntry(key=key, op=MODIFY, previous=before, current=entity))

        for key, entity in previous_by_key.items():
            if key not in current_by_key:
                entries.append(ChangeEntry(key=key, op=REMOVE, previous=entity, current=None))
        return tuple(entries)


def _first_by_key(entities: Sequence[Entity]) -> Dict[Tuple[str, str], Entity]:
    result: Dict[Tuple[str, str], Entity] = {}
    for entity in entities:
        result.setdefault(entity.key, entity)
    return result


def summarize(changeset: Sequence[ChangeEntry]) -> Dict[str, int]:
    counts = {ADD: 0, MODIFY: 0, REMOVE: 0, UNCHANGED: 0}
    for entry in changeset:
        counts[entry.op] += 1
    return counts


__all__ = ["EntityDiffer", "summarize"]
