"""Moving averages over bar windows."""

from .moving_average import Aggregator

__all__ = ["Aggregator"]
