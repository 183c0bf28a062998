"""Core types, constants, exceptions and configuration."""

from .types import Bar, TimeOfDay
from .config import CacheConfig, load_config

__all__ = [
    "Bar",
    "TimeOfDay",
    "CacheConfig",
    "load_config",
]
