"""Sliding-window bar cache with trailing moving averages."""

__version__ = "0.1.0"
