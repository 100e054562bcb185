"""Structured record of a generation transition."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .hooks import HookResult


@dataclass(frozen=True)
class OwnershipMismatch:
    """A path left over from the old generation that something else now owns."""

    target: str
    path: Path


@dataclass(frozen=True)
class TargetError:
    """A per-target failure during cleanup or linking."""

    target: str
    path: Path
    message: str


@dataclass
class TransitionReport:
    """What a switch did (or, in dry-run mode, would have done)."""

    incoming: int
    outgoing: int | None = None
    dry_run: bool = False
    reused: bool = False
    created: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    backed_up: list[tuple[Path, Path]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    ownership_mismatches: list[OwnershipMismatch] = field(default_factory=list)
    hooks: list[HookResult] = field(default_factory=list)
    errors: list[TargetError] = field(default_factory=list)

    @property
    def hooks_ok(self) -> bool:
        return all(hook.ok for hook in self.hooks)

    @property
    def ok(self) -> bool:
        return not self.errors and self.hooks_ok

    def to_dict(self) -> dict[str, object]:
        return {
            "incoming": self.incoming,
            "outgoing": self.outgoing,
            "dry_run": self.dry_run,
            "reused": self.reused,
            "created": list(self.created),
            "removed": list(self.removed),
            "backed_up": [[str(src), str(dst)] for src, dst in self.backed_up],
            "skipped": list(self.skipped),
            "warnings": list(self.warnings),
            "ownership_mismatches": [
                {"target": m.target, "path": str(m.path)} for m in self.ownership_mismatches
            ],
            "hooks": [hook.to_dict() for hook in self.hooks],
            "errors": [
                {"target": e.target, "path": str(e.path), "message": e.message}
                for e in self.errors
            ],
            "ok": self.ok,
        }
