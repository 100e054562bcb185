"""CLI command modules for homefiles."""

from .build import build, check
from .generations import generations
from .switch import switch

__all__ = ["build", "check", "generations", "switch"]
