"""
Configuration loading and validation.

Configuration is a YAML file with one section per concern:

    environment: dev
    cache:      {capacity, tickers}
    refresh:    {interval_sec, fetch_timeout_sec}
    clock:      {timezone}
    source:     {csv_path}
    monitoring: {log_level, log_file}
    report:     {sma_offsets, ema_offsets}

Missing keys fall back to the defaults in constants.py.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .constants import (
    DEFAULT_CAPACITY,
    DEFAULT_REFRESH_INTERVAL_SEC,
    DEFAULT_FETCH_TIMEOUT_SEC,
    DEFAULT_TIMEZONE,
    DEFAULT_SMA_OFFSETS,
    DEFAULT_EMA_OFFSETS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_FILE,
    Environment,
)
from .exceptions import InvalidConfigError, MissingConfigError


@dataclass
class CacheConfig:
    """Validated runtime configuration."""
    tickers: List[str]
    environment: Environment = Environment.DEV
    capacity: int = DEFAULT_CAPACITY
    interval_sec: float = DEFAULT_REFRESH_INTERVAL_SEC
    fetch_timeout_sec: float = DEFAULT_FETCH_TIMEOUT_SEC
    timezone: Optional[str] = DEFAULT_TIMEZONE
    csv_path: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = DEFAULT_LOG_FILE
    sma_offsets: List[int] = field(default_factory=lambda: list(DEFAULT_SMA_OFFSETS))
    ema_offsets: List[int] = field(default_factory=lambda: list(DEFAULT_EMA_OFFSETS))

    def __post_init__(self):
        """Validate configuration values."""
        if not self.tickers:
            raise InvalidConfigError("At least one ticker is required")

        if self.capacity < 1:
            raise InvalidConfigError("cache.capacity must be >= 1", capacity=self.capacity)

        if self.interval_sec <= 0:
            raise InvalidConfigError(
                "refresh.interval_sec must be positive",
                interval_sec=self.interval_sec
            )

        if self.fetch_timeout_sec <= 0:
            raise InvalidConfigError(
                "refresh.fetch_timeout_sec must be positive",
                fetch_timeout_sec=self.fetch_timeout_sec
            )

        bad_offsets = [o for o in self.sma_offsets + self.ema_offsets if o < 1]
        if bad_offsets:
            raise InvalidConfigError("Report offsets must be >= 1", offsets=bad_offsets)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "CacheConfig":
        """Build from a parsed YAML mapping."""
        if not isinstance(config, dict):
            raise InvalidConfigError("Configuration must be a mapping")

        cache = config.get('cache') or {}
        refresh = config.get('refresh') or {}
        clock = config.get('clock') or {}
        source = config.get('source') or {}
        monitoring = config.get('monitoring') or {}
        report = config.get('report') or {}

        try:
            environment = Environment(config.get('environment', Environment.DEV.value))
        except ValueError as e:
            raise InvalidConfigError(
                "Unknown environment",
                environment=config.get('environment')
            ) from e

        tickers = cache.get('tickers', [])
        if isinstance(tickers, str):
            tickers = [tickers]

        try:
            return cls(
                tickers=[str(t) for t in tickers],
                environment=environment,
                capacity=int(cache.get('capacity', DEFAULT_CAPACITY)),
                interval_sec=float(refresh.get('interval_sec', DEFAULT_REFRESH_INTERVAL_SEC)),
                fetch_timeout_sec=float(refresh.get('fetch_timeout_sec', DEFAULT_FETCH_TIMEOUT_SEC)),
                timezone=clock.get('timezone', DEFAULT_TIMEZONE),
                csv_path=source.get('csv_path'),
                log_level=str(monitoring.get('log_level', DEFAULT_LOG_LEVEL)),
                log_file=monitoring.get('log_file', DEFAULT_LOG_FILE),
                sma_offsets=[int(o) for o in report.get('sma_offsets', DEFAULT_SMA_OFFSETS)],
                ema_offsets=[int(o) for o in report.get('ema_offsets', DEFAULT_EMA_OFFSETS)],
            )
        except (TypeError, ValueError) as e:
            raise InvalidConfigError("Malformed configuration value", error=str(e)) from e


def load_config(config_file: Union[str, Path]) -> CacheConfig:
    """
    Load and validate a YAML configuration file.

    Raises:
        MissingConfigError: If the file does not exist or is empty
        InvalidConfigError: If a value fails validation
    """
    path = Path(config_file)
    if not path.exists():
        raise MissingConfigError("Configuration file not found", path=str(path))

    with open(path, 'r') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfigError("Configuration is not valid YAML", path=str(path)) from e

    if raw is None:
        raise MissingConfigError("Configuration file is empty", path=str(path))

    return CacheConfig.from_dict(raw)
