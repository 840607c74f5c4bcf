"""Utility subpackage for reusable helpers (logging, random state)."""

from .logger import get_logger
from .random import derive_seed, make_rng

__all__ = ["get_logger", "derive_seed", "make_rng"]
