"""Switch the live tree from one generation to the next.

The steps run strictly in this order:

1. collision check against the incoming image (aborts before any change);
2. decide which ``on_change`` hooks are due;
3. remove links that only the outgoing generation had;
4. repoint the current-generation marker;
5. link every leaf of the incoming image into the live tree;
6. run the due hooks.

Cleaning before linking means that, moving from link set FA to FB, the live
tree goes FA -> FA ∩ FB -> FB. An interruption at any point leaves only
links that belong to one of the two generations.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from .collisions import ManagedPredicate, backup_path, check_collisions, managed_directory
from .compare import iter_leaves, same_content
from .errors import BackupClobberError
from .generations import Generation, GenerationPointer
from .hooks import HookRunner
from .ops import FileOps
from .report import OwnershipMismatch, TargetError, TransitionReport
from .snapshot import PlacedEntry

logger = logging.getLogger(__name__)


class GenerationSwitcher:
    def __init__(
        self,
        live_root: Path,
        pointer: GenerationPointer,
        is_managed: ManagedPredicate,
        backup_ext: str | None = None,
        ops: FileOps | None = None,
        hook_runner: HookRunner | None = None,
    ):
        self.live_root = live_root
        self.pointer = pointer
        self.is_managed = is_managed
        self.backup_ext = backup_ext
        self.ops = ops or FileOps()
        self.hook_runner = hook_runner or HookRunner(live_root, dry_run=self.ops.dry_run)

    def switch(self, incoming: Generation, outgoing: Generation | None) -> TransitionReport:
        """Make *incoming* the live generation.

        Raises:
            CollisionError: If the pre-check fails; nothing has been changed.
        """
        report = TransitionReport(
            incoming=incoming.number,
            outgoing=outgoing.number if outgoing is not None else None,
            dry_run=self.ops.dry_run,
        )

        forced = [entry.target for entry in incoming.entries if entry.force]
        checked = check_collisions(
            incoming.image, self.live_root, forced, self.is_managed, self.backup_ext
        )
        report.warnings.extend(
            f"'{self.live_root / rel}' already has the wanted content" for rel in checked.identical
        )
        report.warnings.extend(
            f"'{live}' will be moved to '{backup}'" for live, backup in checked.would_backup
        )

        changed = self._changed_entries(incoming, outgoing)

        if outgoing is not None and outgoing.image.is_dir():
            logger.info("Cleaning up orphan links from %s", self.live_root)
            self._cleanup(incoming, outgoing, report)

        if outgoing is not None and outgoing.number == incoming.number:
            logger.info("No change so reusing latest profile generation %d", outgoing.number)
            report.reused = True
        else:
            logger.info("Creating profile generation %d", incoming.number)
            if not self.ops.dry_run:
                self.pointer.set(incoming)

        logger.info("Creating home file links in %s", self.live_root)
        self._link(incoming, forced, report)

        for entry in changed:
            report.hooks.append(self.hook_runner.run(entry.target, entry.on_change))

        return report

    def _changed_entries(
        self, incoming: Generation, outgoing: Generation | None
    ) -> list[PlacedEntry]:
        changed = []
        for entry in incoming.entries:
            if not entry.on_change:
                continue
            new = incoming.image / entry.target
            if outgoing is None:
                changed.append(entry)
                continue
            old = outgoing.image / entry.target
            if not os.path.lexists(old) or not same_content(new, old):
                changed.append(entry)
        return changed

    def _cleanup(
        self, incoming: Generation, outgoing: Generation, report: TransitionReport
    ) -> None:
        for rel in iter_leaves(outgoing.image):
            live = self.live_root / rel
            if os.path.lexists(incoming.image / rel):
                logger.debug("Checking %s: exists", live)
                continue
            if not os.path.lexists(live):
                logger.debug("Checking %s: already gone", live)
                continue
            if not self.is_managed(live):
                logger.warning(
                    "Path '%s' does not link into a generation. Skipping delete.", live
                )
                report.ownership_mismatches.append(OwnershipMismatch(rel, live))
                continue

            logger.debug("Checking %s: gone (deleting)", live)
            try:
                self.ops.remove(live)
                self.ops.prune_empty_parents(live, self.live_root)
            except OSError as exc:
                logger.error("Removing '%s' failed: %s", live, exc)
                report.errors.append(TargetError(rel, live, str(exc)))
                continue
            report.removed.append(rel)

    def _link(self, incoming: Generation, forced: list[str], report: TransitionReport) -> None:
        image = incoming.real_image
        for rel in iter_leaves(incoming.image):
            live = self.live_root / rel
            try:
                self._link_one(rel, image / rel, live, report)
            except (OSError, BackupClobberError) as exc:
                logger.error("Linking '%s' failed: %s", live, exc)
                report.errors.append(TargetError(rel, live, str(exc)))

    def _link_one(self, rel: str, source: Path, live: Path, report: TransitionReport) -> None:
        if live.is_symlink() and os.readlink(live) == str(source):
            logger.debug("Skipping '%s': already linked", live)
            return

        self._prepare_parents(rel)

        if managed_directory(live, self.is_managed):
            # Left over from linking the same target recursively.
            self.ops.remove(live)
        elif live.exists() and not live.is_symlink():
            if same_content(source, live):
                logger.debug("Skipping '%s' as it is identical to '%s'", live, source)
                report.skipped.append(rel)
                return
            if self.backup_ext:
                backup = backup_path(live, self.backup_ext)
                if os.path.lexists(backup):
                    raise BackupClobberError(live, backup)
                self.ops.move(live, backup)
                report.backed_up.append((live, backup))
            else:
                self.ops.remove(live)

        self.ops.symlink(source, live)
        report.created.append(rel)

    def _prepare_parents(self, rel: str) -> None:
        """Make sure every ancestor of *rel* is a real directory.

        An ancestor that is a link from an earlier generation (a directory
        that used to be linked whole) is replaced by a real directory.
        """
        current = self.live_root
        for part in PurePosixPath(rel).parent.parts:
            current = current / part
            if current.is_symlink() and self.is_managed(current):
                self.ops.remove(current)
                self.ops.makedirs(current)
        self.ops.makedirs((self.live_root / rel).parent)
