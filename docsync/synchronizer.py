"""Pipeline orchestration for documentation synchronization runs."""

from __future__ import annotations

import difflib
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .config import CONFIG_FILENAME, ConfigError, DocSyncConfig, load_config
from .differ import EntityDiffer, summarize
from .errors import UnreadablePart, WriteFailure
from .extractors import ExtractionContext, ExtractionResult, Extractor, discover_extractors, extractors_by_category
from .git.revision import RevisionResolver
from .governor import Partition, SizeGovernor
from .logging import get_logger
from .models import (
    CATEGORY_ORDER,
    DERIVED_CATEGORIES,
    Entity,
    Findings,
    RepoManifest,
    category_sort_key,
)
from .postproc.markers import Checkpoint, MarkerManager
from .reconciler import Reconciler, collect_discrepancies
from .renderer import DocumentRenderer, category_title
from .report import ADVANCED, DELETED, FAILED, PREVIEW, UNCHANGED, CategoryStats, PartOutcome, SyncReport
from .repo_scanner import RepoScanner
from .stores.checkpoints import CheckpointStore
from .stores.documents import DocumentStore, StoredPart
from .stores.snapshot import encode_snapshot

_STATE_DIR = ".docsync"
_INDEX_FILENAME = "checkpoints.json"
_PART_HEADER = re.compile(r"^_Part (\d+) of (\d+)\._$", re.MULTILINE)


@dataclass
class CategoryState:
    """What the documents on disk say about one category."""

    category: str
    parts: List[StoredPart] = field(default_factory=list)

    @property
    def previous_entities(self) -> List[Entity]:
        entities: List[Entity] = []
        for part in self.parts:
            entities.extend(part.entities or [])
        return entities

    @property
    def prior_blocks(self) -> List[tuple]:
        blocks: List[tuple] = []
        for part in self.parts:
            blocks.extend(part.blocks)
        return blocks

    @property
    def revisions(self) -> Set[str]:
        return {part.revision for part in self.parts if part.revision}

    @property
    def snapshots_complete(self) -> bool:
        return bool(self.parts) and all(part.entities is not None for part in self.parts)


@dataclass
class PartStatus:
    category: str
    part: str
    revision: Optional[str]
    indexed_revision: Optional[str]
    entities: Optional[int]


class Synchronizer:
    """Keeps the knowledge-base documents consistent with the source tree.

    Categories are processed strictly in their fixed order. Within a
    category the extractors run concurrently, then the new entities are
    diffed against the snapshot stored in the documents, reconciled with
    test expectations, merged into the existing blocks, split by the size
    governor and written part by part. A part's body and checkpoint marker
    are written together; a failed write leaves that part (and its
    checkpoint) exactly as it was.
    """

    def __init__(
        self,
        scanner: RepoScanner | None = None,
        extractors: Optional[Iterable[Extractor]] = None,
        resolver: RevisionResolver | None = None,
        differ: EntityDiffer | None = None,
        reconciler: Reconciler | None = None,
        renderer: DocumentRenderer | None = None,
        governor: SizeGovernor | None = None,
        marker_manager: MarkerManager | None = None,
        max_workers: int = 4,
    ) -> None:
        self.scanner = scanner or RepoScanner()
        self._extractor_overrides = list(extractors) if extractors is not None else None
        self.resolver = resolver or RevisionResolver()
        self.differ = differ or EntityDiffer()
        self.reconciler = reconciler or Reconciler()
        self.marker_manager = marker_manager or MarkerManager()
        self.renderer = renderer or DocumentRenderer(markers=self.marker_manager)
        self.governor = governor or SizeGovernor()
        self.max_workers = max(1, max_workers)
        self.logger = get_logger("synchronizer")

    def synchronize(
        self,
        path: str,
        *,
        categories: Optional[Sequence[str]] = None,
        size_budget: Optional[int] = None,
        revision: Optional[str] = None,
        dry_run: bool = False,
    ) -> SyncReport:
        """Bring every selected category's documents up to date with ``path``."""
        repo_path = Path(path).expanduser().resolve()
        self.logger.info("Starting sync run for %s", repo_path)
        config = self._load_config(repo_path)
        selected = self._select_categories(config, categories)

        manifest = self.scanner.scan(str(repo_path))
        self.logger.debug("Scanner discovered %d files", len(manifest.files))
        if revision is None:
            revision = self.resolver.current(
                str(repo_path), manifest, ignore=[f"{config.docs_dir}/", f"{_STATE_DIR}/"]
            )
        self.logger.info("Source revision %s", revision)

        grouped = extractors_by_category(self._select_extractors(config))
        documents = DocumentStore(config.docs_path, self.marker_manager)
        checkpoints = CheckpointStore(repo_path / _STATE_DIR / _INDEX_FILENAME)
        report = SyncReport(root=str(repo_path), revision=revision, dry_run=dry_run)
        findings = Findings()

        for category in CATEGORY_ORDER:
            state = self._load_state(category, documents, checkpoints, repair=not dry_run)
            if category not in selected:
                self._record_snapshot_findings(category, state, findings)
                continue
            try:
                self._sync_category(
                    category,
                    state,
                    grouped.get(category, []),
                    config=config,
                    manifest=manifest,
                    revision=revision,
                    size_budget=size_budget,
                    documents=documents,
                    checkpoints=checkpoints,
                    findings=findings,
                    report=report,
                    dry_run=dry_run,
                )
            except Exception as exc:  # pragma: no cover - defensive guard
                self.logger.exception("Category %s failed: %s", category, exc)
                report.record(PartOutcome(category, category, FAILED, reason=f"internal error: {exc}"))
                self._record_snapshot_findings(category, state, findings)

        if not dry_run:
            report.save(repo_path)
        failed = len(report.failed)
        self.logger.info(
            "Sync finished: %d parts processed, %d failed", len(report.parts), failed
        )
        return report

    def status(self, path: str) -> List[PartStatus]:
        """Describe every stored part and its checkpoint without changing anything."""
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.is_dir():
            raise FileNotFoundError(f"Repository path not found: {path}")
        config = self._load_config(repo_path)
        documents = DocumentStore(config.docs_path, self.marker_manager)
        checkpoints = CheckpointStore(repo_path / _STATE_DIR / _INDEX_FILENAME)
        rows: List[PartStatus] = []
        for category in CATEGORY_ORDER:
            state = self._load_state(category, documents, checkpoints, repair=False)
            for part in state.parts:
                rows.append(
                    PartStatus(
                        category=category,
                        part=part.name,
                        revision=part.revision,
                        indexed_revision=checkpoints.get(part.name),
                        entities=len(part.entities) if part.entities is not None else None,
                    )
                )
        return rows

    # ------------------------------------------------------------------
    # Category pipeline

    def _sync_category(
        self,
        category: str,
        state: CategoryState,
        extractors: Sequence[Extractor],
        *,
        config: DocSyncConfig,
        manifest: RepoManifest,
        revision: str,
        size_budget: Optional[int],
        documents: DocumentStore,
        checkpoints: CheckpointStore,
        findings: Findings,
        report: SyncReport,
        dry_run: bool,
    ) -> None:
        stats = CategoryStats(category=category)
        report.categories.append(stats)

        if self._can_reuse_snapshot(category, state, extractors, manifest):
            self.logger.info("No relevant changes for %s since %s; reusing snapshot", category, next(iter(state.revisions)))
            current = state.previous_entities
            stats.reused_snapshot = True
        else:
            context = ExtractionContext(manifest=manifest, findings=findings)
            result = self._extract(extractors, context)
            current = result.entities
            report.extraction_errors.extend(str(error) for error in result.errors)

        changeset = self.reconciler.reconcile(self.differ.diff(state.previous_entities, current))
        counts = summarize(changeset)
        stats.added, stats.modified = counts["add"], counts["modify"]
        stats.removed, stats.unchanged = counts["remove"], counts["unchanged"]
        discrepancies = collect_discrepancies(changeset)
        stats.discrepancies = len(discrepancies)
        findings.entities[category] = list(current)
        findings.discrepancies[category] = discrepancies
        self.logger.debug(
            "%s: %d added, %d modified, %d removed, %d unchanged",
            category,
            stats.added,
            stats.modified,
            stats.removed,
            stats.unchanged,
        )

        blocks = self.renderer.merge(changeset, state.prior_blocks)
        budget = size_budget if size_budget is not None else config.budget.for_category(category)
        partition = self.governor.partition(category, category_title(category), blocks, budget, config.partition)
        report.warnings.extend(str(warning) for warning in partition.warnings)

        all_written = self._write_parts(
            category, partition, revision, documents, checkpoints, report, dry_run
        )
        self._remove_stale_parts(
            category, state, partition, documents, checkpoints, report, dry_run, all_written
        )

    def _extract(self, extractors: Sequence[Extractor], context: ExtractionContext) -> ExtractionResult:
        active = [extractor for extractor in extractors if extractor.supports(context.manifest)]
        if len(active) > 1 and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=min(len(active), self.max_workers)) as pool:
                results = list(pool.map(lambda extractor: extractor.extract(context), active))
        else:
            results = [extractor.extract(context) for extractor in active]

        merged = ExtractionResult()
        seen = set()
        for extractor, result in zip(active, results):
            self.logger.debug("%s extractor produced %d entities", extractor.name, len(result.entities))
            merged.errors.extend(result.errors)
            for entity in result.entities:
                if entity.key in seen:
                    continue
                seen.add(entity.key)
                merged.entities.append(entity)
        return merged

    def _can_reuse_snapshot(
        self,
        category: str,
        state: CategoryState,
        extractors: Sequence[Extractor],
        manifest: RepoManifest,
    ) -> bool:
        if category in DERIVED_CATEGORIES or not extractors:
            return False
        if not state.snapshots_complete or len(state.revisions) != 1:
            return False
        since = next(iter(state.revisions))
        changes = self.resolver.changed_files(manifest.root, since)
        if changes is None:
            return False
        watched: List[str] = [CONFIG_FILENAME]
        for extractor in extractors:
            watched.extend(extractor.watch_patterns)
        return not changes.touches(watched)

    def _write_parts(
        self,
        category: str,
        partition: Partition,
        revision: str,
        documents: DocumentStore,
        checkpoints: CheckpointStore,
        report: SyncReport,
        dry_run: bool,
    ) -> bool:
        all_written = True
        for part in partition.parts:
            snapshot = encode_snapshot([block.entity for block in part.blocks])
            checkpoint = Checkpoint(category=category, part=part.name, revision=revision, snapshot=snapshot)
            text = self.marker_manager.with_checkpoint(part.text, checkpoint)
            reason = "exceeds size budget" if part.oversized else None
            existing = documents.read_text(part.name)

            if existing == text:
                if not dry_run and checkpoints.get(part.name) != revision:
                    checkpoints.set(part.name, revision, category=category, logical=partition.logical, index=part.index)
                report.record(PartOutcome(category, part.name, UNCHANGED, revision=revision, reason=reason))
                continue

            if dry_run:
                report.diffs[part.name] = self._render_diff(documents, part.name, existing or "", text)
                report.record(PartOutcome(category, part.name, PREVIEW, revision=revision, reason=reason))
                continue

            try:
                documents.write(part.name, text)
            except WriteFailure as exc:
                all_written = False
                self.logger.error("Could not write %s: %s", part.name, exc.reason)
                report.record(
                    PartOutcome(
                        category,
                        part.name,
                        FAILED,
                        revision=checkpoints.get(part.name),
                        reason=f"write failed: {exc.reason}",
                    )
                )
                continue
            checkpoints.set(part.name, revision, category=category, logical=partition.logical, index=part.index)
            self.logger.info("Wrote %s (%d blocks)", part.name, len(part.blocks))
            report.record(PartOutcome(category, part.name, ADVANCED, revision=revision, reason=reason))
        return all_written

    def _remove_stale_parts(
        self,
        category: str,
        state: CategoryState,
        partition: Partition,
        documents: DocumentStore,
        checkpoints: CheckpointStore,
        report: SyncReport,
        dry_run: bool,
        all_written: bool,
    ) -> None:
        keep = set(partition.names)
        stale = [part.name for part in state.parts if part.name not in keep]
        stale.extend(name for name in checkpoints.list_parts(category) if name not in keep and name not in stale)
        for name in stale:
            if dry_run:
                existing = documents.read_text(name)
                if existing is not None:
                    report.diffs[name] = self._render_diff(documents, name, existing, "")
                report.record(PartOutcome(category, name, PREVIEW, reason="would be deleted"))
                continue
            if not all_written:
                report.record(
                    PartOutcome(
                        category,
                        name,
                        FAILED,
                        revision=checkpoints.get(name),
                        reason="kept because another part of the category failed to write",
                    )
                )
                continue
            try:
                documents.delete(name)
            except WriteFailure as exc:
                self.logger.error("Could not delete stale part %s: %s", name, exc.reason)
                report.record(PartOutcome(category, name, FAILED, reason=exc.reason))
                continue
            checkpoints.remove(name)
            self.logger.info("Deleted stale part %s", name)
            report.record(PartOutcome(category, name, DELETED, reason="no longer needed"))

    # ------------------------------------------------------------------
    # Stored state

    def _load_state(
        self,
        category: str,
        documents: DocumentStore,
        checkpoints: CheckpointStore,
        *,
        repair: bool,
    ) -> CategoryState:
        names = list(dict.fromkeys(checkpoints.list_parts(category) + documents.discover(category)))
        parts: List[StoredPart] = []
        for name in names:
            try:
                stored = documents.read(name)
            except UnreadablePart as exc:
                self.logger.warning("Skipping unreadable part %s, keeping its checkpoint: %s", name, exc.reason)
                continue
            if stored is None:
                if repair and checkpoints.get(name) is not None:
                    self.logger.info("Dropping checkpoint for missing part %s", name)
                    checkpoints.remove(name)
                continue
            if stored.checkpoint is None or stored.checkpoint.category != category:
                # Not written by docsync (or for another category); leave it alone.
                continue
            parts.append(stored)

        parts.sort(key=lambda part: (self._part_index(part, checkpoints), _natural_key(part.name)))
        if repair:
            for index, part in enumerate(parts, start=1):
                if part.revision and checkpoints.get(part.name) != part.revision:
                    self.logger.info("Repairing checkpoint index for %s from its marker", part.name)
                    checkpoints.set(part.name, part.revision, category=category, logical=category, index=index)
        return CategoryState(category=category, parts=parts)

    @staticmethod
    def _part_index(part: StoredPart, checkpoints: CheckpointStore) -> int:
        match = _PART_HEADER.search(part.body)
        if match:
            return int(match.group(1))
        entry = checkpoints.entry(part.name)
        if entry and isinstance(entry.get("index"), int):
            return int(entry["index"])  # type: ignore[arg-type]
        return 0

    def _record_snapshot_findings(self, category: str, state: CategoryState, findings: Findings) -> None:
        entities = state.previous_entities
        findings.entities[category] = entities
        findings.discrepancies[category] = [
            discrepancy for entity in entities for discrepancy in self.reconciler.check(entity)
        ]

    # ------------------------------------------------------------------
    # Helpers

    def _load_config(self, repo_path: Path) -> DocSyncConfig:
        try:
            return load_config(repo_path)
        except ConfigError as exc:
            self.logger.warning("Ignoring invalid %s: %s", CONFIG_FILENAME, exc)
            return DocSyncConfig(root=repo_path)

    @staticmethod
    def _select_categories(config: DocSyncConfig, requested: Optional[Sequence[str]]) -> List[str]:
        if not requested:
            return list(config.categories)
        unknown = sorted(set(requested) - set(CATEGORY_ORDER))
        if unknown:
            raise ValueError(f"Unknown categories requested: {', '.join(unknown)}")
        return sorted(dict.fromkeys(requested), key=category_sort_key)

    def _select_extractors(self, config: DocSyncConfig) -> List[Extractor]:
        if self._extractor_overrides is not None:
            return list(self._extractor_overrides)
        return discover_extractors(config.extractors.enabled or None)

    @staticmethod
    def _render_diff(documents: DocumentStore, part: str, original: str, updated: str) -> str:
        name = documents.path_for(part).name
        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            updated.splitlines(keepends=True),
            fromfile=f"{name} (current)",
            tofile=f"{name} (updated)",
        )
        return "".join(diff)


def _natural_key(name: str) -> List[object]:
    return [int(token) if token.isdigit() else token for token in re.split(r"(\d+)", name)]


__all__ = ["CategoryState", "PartStatus", "Synchronizer"]
