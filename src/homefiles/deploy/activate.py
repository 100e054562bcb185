"""Two-phase activation: plan a generation, then apply it.

Planning (validation, ordering, image build) never touches the live tree.
Applying is left entirely to :class:`GenerationSwitcher`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from .collisions import CollisionReport, check_collisions
from .entries import FileEntry, check_unique_targets
from .generations import IMAGE_DIRNAME, Generation, GenerationStore, managed_link_predicate
from .hooks import HookRunner
from .ordering import order
from .ops import FileOps
from .report import TransitionReport
from .snapshot import Snapshot, build_snapshot
from .switcher import GenerationSwitcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivationOptions:
    live_root: Path
    backup_ext: str | None = None
    dry_run: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class Plan:
    generation: Generation
    outgoing: Generation | None
    snapshot: Snapshot


@contextmanager
def plan_generation(
    entries: Sequence[FileEntry], store: GenerationStore, dry_run: bool = False
) -> Iterator[Plan]:
    """Validate, order and build *entries*, yielding the resulting plan.

    The yielded generation is either newly committed, the unchanged current
    generation, or (in dry-run mode) a staged image that is discarded when
    the context exits.

    Raises:
        ValidationError: On duplicate targets.
        CycleError: If no placement order exists.
        SnapshotError: If the image cannot be built.
    """
    check_unique_targets(entries)
    ordered = order(entries)
    outgoing = store.current()
    with store.staging() as staging:
        snapshot = build_snapshot(ordered, staging / IMAGE_DIRNAME)
        generation = store.commit(staging, snapshot, dry_run=dry_run)
        yield Plan(generation, outgoing, snapshot)


def build_generation(entries: Sequence[FileEntry], store: GenerationStore) -> Generation:
    """Run the planning phase alone and return the committed generation."""
    with plan_generation(entries, store) as plan:
        return plan.generation


def check_generation(
    entries: Sequence[FileEntry], store: GenerationStore, options: ActivationOptions
) -> CollisionReport:
    """Plan a generation in dry-run mode and run only the collision check."""
    with plan_generation(entries, store, dry_run=True) as plan:
        forced = [entry.target for entry in plan.generation.entries if entry.force]
        return check_collisions(
            plan.generation.image,
            options.live_root,
            forced,
            managed_link_predicate(store.generations_dir),
            options.backup_ext,
        )


def activate(
    entries: Sequence[FileEntry], store: GenerationStore, options: ActivationOptions
) -> TransitionReport:
    """Build a generation from *entries* and switch the live tree to it.

    Raises:
        ValidationError, CycleError, SnapshotError, CollisionError: Before
            anything in the live tree has been changed.
    """
    ops = FileOps(dry_run=options.dry_run, verbose=options.verbose)
    with plan_generation(entries, store, dry_run=options.dry_run) as plan:
        switcher = GenerationSwitcher(
            live_root=options.live_root,
            pointer=store.pointer,
            is_managed=managed_link_predicate(store.generations_dir),
            backup_ext=options.backup_ext,
            ops=ops,
            hook_runner=HookRunner(options.live_root, dry_run=options.dry_run),
        )
        report = switcher.switch(plan.generation, plan.outgoing)

    if not report.ok:
        logger.error(
            "Generation %d activated with %d error(s) and %d failed hook(s)",
            report.incoming,
            len(report.errors),
            sum(1 for hook in report.hooks if not hook.ok),
        )
    return report
