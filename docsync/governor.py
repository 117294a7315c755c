"""Size governor that splits oversized logical documents into parts."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional, Sequence

from .errors import SizeGovernorError
from .logging import get_logger
from .renderer import RenderedBlock, compose_part

logger = get_logger("governor")

_GROUP_FALLBACK = "misc"


def estimate_tokens(text: str) -> int:
    """Cheap token estimate (roughly four characters per token)."""
    if not text:
        return 0
    return max(1, len(text) // 4)


@dataclass
class Part:
    """One physical part produced by the governor."""

    name: str
    index: int
    total: int
    blocks: List[RenderedBlock]
    text: str
    size: int
    oversized: bool = False


@dataclass
class Partition:
    logical: str
    parts: List[Part]
    warnings: List[SizeGovernorError] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [part.name for part in self.parts]


class SizeGovernor:
    """Packs ordered blocks into the fewest parts that fit the budget.

    Packing is greedy and contiguous, which is optimal for an ordered
    sequence: no part could take another block without exceeding the budget.
    A block that does not fit even on its own gets a part to itself and a
    :class:`SizeGovernorError` is recorded as a warning.
    """

    def partition(
        self,
        logical: str,
        title: str,
        blocks: Sequence[RenderedBlock],
        budget: Optional[int],
        strategy: str = "index",
    ) -> Partition:
        whole = compose_part(title, [block.text for block in blocks])
        whole_size = estimate_tokens(whole)
        if budget is None or budget <= 0 or whole_size <= budget or len(blocks) <= 1:
            part = Part(name=logical, index=1, total=1, blocks=list(blocks), text=whole, size=whole_size)
            warnings: List[SizeGovernorError] = []
            if budget and budget > 0 and whole_size > budget:
                part.oversized = True
                warnings.append(self._oversized(blocks[0].key if blocks else logical, whole_size, budget))
            return Partition(logical=logical, parts=[part], warnings=warnings)

        placeholder = 10 ** len(str(len(blocks))) - 1
        chunks: List[List[RenderedBlock]] = []
        current: List[RenderedBlock] = []
        warnings = []
        for block in blocks:
            candidate = current + [block]
            size = self._measure(title, candidate, placeholder)
            if size <= budget:
                current = candidate
                continue
            if current:
                chunks.append(current)
            alone = self._measure(title, [block], placeholder)
            if alone > budget:
                warnings.append(self._oversized(block.key, alone, budget))
                chunks.append([block])
                current = []
            else:
                current = [block]
        if current:
            chunks.append(current)

        names = self._names(logical, chunks, strategy)
        total = len(chunks)
        parts: List[Part] = []
        for index, (name, chunk) in enumerate(zip(names, chunks), start=1):
            text = compose_part(title, [block.text for block in chunk], index=index, total=total)
            size = estimate_tokens(text)
            parts.append(
                Part(
                    name=name,
                    index=index,
                    total=total,
                    blocks=chunk,
                    text=text,
                    size=size,
                    oversized=size > budget,
                )
            )
        logger.debug("Split %s into %d parts (budget %d)", logical, total, budget)
        return Partition(logical=logical, parts=parts, warnings=warnings)

    @staticmethod
    def _measure(title: str, blocks: Sequence[RenderedBlock], placeholder: int) -> int:
        text = compose_part(title, [block.text for block in blocks], index=placeholder, total=placeholder)
        return estimate_tokens(text)

    @staticmethod
    def _oversized(key: str, size: int, budget: int) -> SizeGovernorError:
        error = SizeGovernorError(key, size, budget)
        logger.warning("%s; writing it to its own oversized part", error)
        return error

    def _names(self, logical: str, chunks: Sequence[Sequence[RenderedBlock]], strategy: str) -> List[str]:
        if strategy != "group":
            return [f"{logical}-{index}" for index in range(1, len(chunks) + 1)]
        names: List[str] = []
        used = set()
        for chunk in chunks:
            base = f"{logical}-{_group_name(chunk)}"
            name = base
            counter = 2
            while name in used:
                name = f"{base}-{counter}"
                counter += 1
            used.add(name)
            names.append(name)
        return names


def _group_name(blocks: Sequence[RenderedBlock]) -> str:
    """Most common source directory among the blocks, as a file-name slug."""
    counts: Counter = Counter()
    for block in blocks:
        parent = PurePosixPath(block.entity.location.path).parent.name
        if parent:
            counts[parent] += 1
    if not counts:
        return _GROUP_FALLBACK
    top = max(counts.items(), key=lambda item: (item[1], -_first_index(blocks, item[0])))[0]
    slug = re.sub(r"[^a-z0-9]+", "-", top.lower()).strip("-")
    return slug or _GROUP_FALLBACK


def _first_index(blocks: Sequence[RenderedBlock], directory: str) -> int:
    for index, block in enumerate(blocks):
        if PurePosixPath(block.entity.location.path).parent.name == directory:
            return index
    return len(blocks)


__all__ = ["Part", "Partition", "SizeGovernor", "estimate_tokens"]
