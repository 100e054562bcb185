"""Declarative file deployment with generation switching.

This subpackage turns declared files into numbered, immutable generation
images and switches a live directory tree between them.
"""

from homefiles.deploy.activate import (
    ActivationOptions,
    activate,
    build_generation,
    check_generation,
    plan_generation,
)
from homefiles.deploy.collisions import Collision, CollisionReport, check_collisions
from homefiles.deploy.entries import FileDeclaration, FileEntry, check_unique_targets, make_entry
from homefiles.deploy.errors import (
    BackupClobberError,
    CollisionError,
    CycleError,
    DeployError,
    DuplicateTargetError,
    OutsideRootError,
    PathTraversalError,
    SnapshotError,
    ValidationError,
)
from homefiles.deploy.generations import (
    Generation,
    GenerationPointer,
    GenerationStore,
    StoreError,
    managed_link_predicate,
)
from homefiles.deploy.ordering import order
from homefiles.deploy.report import TransitionReport
from homefiles.deploy.snapshot import Snapshot, build_snapshot
from homefiles.deploy.switcher import GenerationSwitcher

__all__ = [
    "ActivationOptions",
    "BackupClobberError",
    "Collision",
    "CollisionError",
    "CollisionReport",
    "CycleError",
    "DeployError",
    "DuplicateTargetError",
    "FileDeclaration",
    "FileEntry",
    "Generation",
    "GenerationPointer",
    "GenerationStore",
    "GenerationSwitcher",
    "OutsideRootError",
    "PathTraversalError",
    "Snapshot",
    "SnapshotError",
    "StoreError",
    "TransitionReport",
    "ValidationError",
    "activate",
    "build_generation",
    "build_snapshot",
    "check_collisions",
    "check_generation",
    "check_unique_targets",
    "make_entry",
    "managed_link_predicate",
    "order",
    "plan_generation",
]
