"""Resumable conversion-generation pipeline.

Two phases, both driven by :class:`ConcurrencyScheduler` and persisted
through :class:`CheckpointStore` after every batch:

**Phase A (classification).** Every ungrouped unit is classified by the
Oracle, batch by batch. Each batch's answers are recorded in
``groupsClassified`` and the checkpoint is saved. Once all units have an
answer, ``classificationComplete`` is set and the recorded groups are
merged into the registry. Phase B never starts before that barrier, since
group membership decides each unit's candidate set.

**Phase B (conversion generation).** For each group that is not completed
and still lacks edges, the units not yet in ``unitsCompleted`` are sent to
the Oracle in batches. After each batch joins, its edges are merged and
the registry and checkpoint are rewritten (registry first). When the last
batch of a group is done, closure and the consistency check run and the
group is marked completed.

A unit counts as completed once its batch has joined, even when its
Oracle call failed and produced no edges. Such groups stay short of
N x (N - 1) edges and can be revisited with
:func:`reopen_incomplete_groups`.

All mutable state lives in a :class:`PipelineContext` passed explicitly to
the pipeline; there is no module-level state.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from unitgraph.config import PipelineSettings
from unitgraph.oracle import Oracle
from unitgraph.units.unitclassify import apply_classification, classify_unit, known_group_names
from unitgraph.units.unitclosure import ClosureReport, complete_group_conversions
from unitgraph.units.unitconsistency import validate_group_consistency
from unitgraph.units.unitconversions import ConversionOutcome, collect_for_unit, merge_conversions
from unitgraph.units.unitmodels import Unit, UnitGroup
from unitgraph.units.unitregistry import UnitRegistry, load_registry, save_registry
from unitgraph.utils.checkpoint import Checkpoint, CheckpointStore
from unitgraph.utils.scheduler import ConcurrencyScheduler

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Counters accumulated over one invocation."""

    units_classified: int = 0
    fallback_classifications: int = 0
    groups_processed: int = 0
    groups_remaining: int = 0
    oracle_calls: int = 0
    oracle_failures: int = 0
    conversions_added: int = 0
    conversions_rejected: int = 0
    conversions_derived: int = 0
    consistency_warnings: int = 0
    group_limit_reached: bool = False
    closure_reports: List[ClosureReport] = field(default_factory=list)


@dataclass
class PipelineContext:
    """Everything a pipeline stage reads or mutates."""

    registry: UnitRegistry
    checkpoint: Checkpoint
    store: CheckpointStore
    oracle: Oracle
    settings: PipelineSettings
    registry_path: Path
    stats: PipelineStats = field(default_factory=PipelineStats)

    @classmethod
    def create(
        cls,
        settings: PipelineSettings,
        oracle: Oracle,
        registry_path: Optional[Union[str, Path]] = None,
        checkpoint_path: Optional[Union[str, Path]] = None,
    ) -> "PipelineContext":
        """Load registry and checkpoint from disk.

        Raises:
            RegistryError: If the registry file is missing or unreadable
        """
        registry_path = Path(registry_path) if registry_path else settings.registry_path
        store = CheckpointStore(checkpoint_path or settings.checkpoint_path)
        return cls(
            registry=load_registry(registry_path),
            checkpoint=store.load(),
            store=store,
            oracle=oracle,
            settings=settings,
            registry_path=registry_path,
        )

    def save(self) -> None:
        """Persist registry, then checkpoint."""
        save_registry(self.registry, self.registry_path)
        self.store.save(self.checkpoint)


def groups_needing_conversions(registry: UnitRegistry, checkpoint: Checkpoint) -> List[UnitGroup]:
    """Groups with at least two units, short of N x (N - 1) edges, not yet completed.

    The in-progress group, if any, comes first so its per-unit completed set
    is consumed before another group replaces it.
    """
    pending = []
    for group in registry.group_list():
        if checkpoint.is_group_completed(group.id):
            continue
        n = len(registry.group_units(group))
        if n >= 2 and len(group.conversions) < n * (n - 1):
            pending.append(group)
    pending.sort(key=lambda g: g.id != checkpoint.current_conversion_group_id)
    return pending


def reopen_incomplete_groups(registry: UnitRegistry, checkpoint: Checkpoint) -> List[str]:
    """Un-complete every completed group that is still missing edges.

    Returns:
        Ids of the reopened groups
    """
    reopened = []
    for group_id in list(checkpoint.conversions_groups_completed):
        group = registry.get_group(group_id)
        if group is None or group.is_complete():
            continue
        if checkpoint.reopen_group(group_id):
            reopened.append(group_id)
    if reopened:
        logger.info(f"Reopened {len(reopened)} incomplete groups: {', '.join(reopened)}")
    return reopened


class ConversionPipeline:
    """Orchestrates classification and conversion generation.

    Args:
        context: Registry, checkpoint and Oracle for this run
        show_progress: Display tqdm progress bars

    Examples:
        >>> context = PipelineContext.create(load_settings(), AnthropicOracle(settings))
        >>> stats = asyncio.run(ConversionPipeline(context).run(max_groups=5))
    """

    def __init__(self, context: PipelineContext, show_progress: bool = True):
        self.context = context
        self.show_progress = show_progress

    # ------------------------------------------------------------------
    # Phase A
    # ------------------------------------------------------------------

    async def classify_all(self) -> int:
        """Classify every ungrouped unit, resuming from the checkpoint.

        Returns:
            Number of units placed in a group by this call
        """
        ctx = self.context
        checkpoint = ctx.checkpoint
        fallback = ctx.settings.fallback_group

        if not checkpoint.classification_complete:
            recorded = checkpoint.classified_unit_ids()
            pending = [u for u in ctx.registry.ungrouped_units() if u.id not in recorded]
            logger.info(f"Classifying {len(pending)} units ({len(recorded)} already recorded)")
            known = known_group_names(ctx.registry, checkpoint)

            async def worker(unit: Unit) -> str:
                ctx.stats.oracle_calls += 1
                return await classify_unit(ctx.oracle, unit, list(known), fallback)

            def on_batch(batch: List[Unit], names: List[Optional[str]]) -> None:
                for unit, name in zip(batch, names):
                    if not name or name == fallback:
                        ctx.stats.fallback_classifications += 1
                    name = name or fallback
                    if checkpoint.record_classification(name, unit.id):
                        ctx.stats.units_classified += 1
                    if name not in known:
                        known.append(name)
                ctx.store.save(checkpoint)

            scheduler = ConcurrencyScheduler(
                ctx.settings.classification_batch_size,
                desc="Classifying units",
                show_progress=self.show_progress,
            )
            await scheduler.run(pending, worker, on_batch)

            checkpoint.classification_complete = True

        placed = apply_classification(ctx.registry, checkpoint, fallback)
        # Units added to the registry after classification completed
        for unit in ctx.registry.ungrouped_units():
            logger.warning(f"Unit '{unit.symbol}' has no recorded classification, using '{fallback}'")
            checkpoint.record_classification(fallback, unit.id)
            ctx.registry.assign_unit(unit.id, fallback, fallback)
            placed += 1

        ctx.save()
        logger.info(f"Classification complete: {len(ctx.registry.groups)} groups, {placed} units placed")
        return placed

    # ------------------------------------------------------------------
    # Phase B
    # ------------------------------------------------------------------

    async def generate_group(self, group: UnitGroup) -> ClosureReport:
        """Collect direct edges for the unfinished units of *group*, then close it."""
        ctx = self.context
        units = ctx.registry.group_units(group)
        done = ctx.checkpoint.units_completed_for(group.id)
        todo = [u for u in units if u.id not in done]
        logger.info(f"{group.name}: {len(units)} units, {len(todo)} to process")

        ctx.checkpoint.mark_units_completed(group.id, [])

        async def worker(unit: Unit) -> ConversionOutcome:
            ctx.stats.oracle_calls += 1
            return await collect_for_unit(ctx.oracle, unit, units, group.name)

        def on_batch(batch: Sequence[Unit], outcomes: List[Optional[ConversionOutcome]]) -> None:
            for unit, outcome in zip(batch, outcomes):
                if outcome is None or outcome.error:
                    ctx.stats.oracle_failures += 1
                    continue
                ctx.stats.conversions_added += merge_conversions(group, outcome.edges)
                ctx.stats.conversions_rejected += outcome.rejected
            ctx.checkpoint.mark_units_completed(group.id, [u.id for u in batch])
            ctx.save()

        scheduler = ConcurrencyScheduler(
            ctx.settings.conversion_batch_size,
            desc=group.name,
            show_progress=self.show_progress,
        )
        await scheduler.run(todo, worker, on_batch)

        report = complete_group_conversions(ctx.registry, group)
        report.consistency = validate_group_consistency(group, ctx.settings.consistency_tolerance)
        ctx.stats.conversions_derived += max(report.total - report.original, 0)
        ctx.stats.consistency_warnings += len(report.consistency.warnings)
        ctx.stats.closure_reports.append(report)

        ctx.checkpoint.mark_group_completed(group.id)
        ctx.save()
        logger.info(
            f"{group.name}: {report.direct} direct + {report.derived} derived "
            f"= {report.total}/{report.expected} conversions"
        )
        return report

    async def generate_conversions(self, max_groups: Optional[int] = None) -> PipelineStats:
        """Process pending groups, stopping after *max_groups* fully processed groups."""
        ctx = self.context
        if not ctx.checkpoint.classification_complete:
            raise RuntimeError("conversion generation requires completed classification")

        pending = groups_needing_conversions(ctx.registry, ctx.checkpoint)
        logger.info(f"{len(pending)} groups need conversions")

        for index, group in enumerate(pending):
            if max_groups is not None and ctx.stats.groups_processed >= max_groups:
                ctx.stats.group_limit_reached = True
                ctx.stats.groups_remaining = len(pending) - index
                logger.info(f"Group limit {max_groups} reached, {ctx.stats.groups_remaining} groups left")
                break
            await self.generate_group(group)
            ctx.stats.groups_processed += 1

        return ctx.stats

    async def run(self, max_groups: Optional[int] = None) -> PipelineStats:
        """Run both phases, resuming from the checkpoint."""
        await self.classify_all()
        return await self.generate_conversions(max_groups)


__all__ = [
    "PipelineStats",
    "PipelineContext",
    "ConversionPipeline",
    "groups_needing_conversions",
    "reopen_incomplete_groups",
]
