"""Unified configuration for daily-ops aggregation.

This module provides the filesystem layout (DataPaths) and the tuning knobs
of the aggregation batch (AggregationConfig). Both are plain dataclasses.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daily_ops.exceptions import ConfigError

DEFAULT_BOUNDARY_HOUR = 6
DEFAULT_TIMEZONE = "Europe/Amsterdam"
DEFAULT_MAX_CATEGORY_DEPTH = 10

ENV_PREFIX = "DAILY_OPS_"


@dataclass
class DataPaths:
    """All filesystem paths used by the file-backed pipeline.

    Attributes:
        data_root: Root directory for all data layers.

    Directory Structure:
        data_root/
        ├── a_raw/              # Bronze: raw documents from the sync process
        │   ├── transactions/   # POS ticket documents (*.json, *.jsonl)
        │   └── labor/          # shift documents (*.json, *.jsonl)
        ├── reference/          # category hierarchy tables
        └── c_processed/        # Gold: aggregated collections
            ├── sales_aggregated.json
            ├── labor_aggregated.json
            └── _meta/          # stage metadata per date range

    """

    data_root: Path

    @classmethod
    def from_root(cls, data_root: str | Path) -> DataPaths:
        """Create DataPaths from a root directory.

        Args:
            data_root: Root directory for the data layers.

        Returns:
            DataPaths instance.

        Examples:
            >>> paths = DataPaths.from_root("data")
            >>> paths.raw_transactions
            PosixPath('data/a_raw/transactions')

        """
        if isinstance(data_root, str):
            data_root = Path(data_root)
        return cls(data_root=data_root)

    @property
    def raw_transactions(self) -> Path:
        """Bronze layer: raw POS ticket documents."""
        return self.data_root / "a_raw" / "transactions"

    @property
    def raw_labor(self) -> Path:
        """Bronze layer: raw shift documents."""
        return self.data_root / "a_raw" / "labor"

    @property
    def reference(self) -> Path:
        """Category hierarchy tables."""
        return self.data_root / "reference"

    @property
    def processed(self) -> Path:
        """Gold layer: aggregated collections."""
        return self.data_root / "c_processed"

    def ensure_dirs(self) -> None:
        """Create all directories in the data structure."""
        for path in [
            self.raw_transactions,
            self.raw_labor,
            self.reference,
            self.processed,
        ]:
            path.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class AggregationConfig:
    """Tuning for one aggregation batch.

    Attributes:
        boundary_hour: Hour (0-23) at which a working day starts. Sales before
            this hour belong to the previous calendar date.
        timezone: IANA name of the single reference timezone used for working
            days and hour-of-day breakdowns.
        max_category_depth: Maximum parent hops when resolving a main category.
        workers: Number of shards reduced in parallel. 1 disables threading.
        upsert_batch_size: Number of upserts sent per bulk write.
        default_hourly_wage: Wage used when a shift carries no cost at all.
            None leaves such shifts at zero cost.
    """

    boundary_hour: int = DEFAULT_BOUNDARY_HOUR
    timezone: str = DEFAULT_TIMEZONE
    max_category_depth: int = DEFAULT_MAX_CATEGORY_DEPTH
    workers: int = 1
    upsert_batch_size: int = 500
    default_hourly_wage: Optional[float] = None

    def __post_init__(self) -> None:
        if not 0 <= self.boundary_hour <= 23:
            raise ConfigError(f"boundary_hour must be within 0-23, got {self.boundary_hour}")
        if self.max_category_depth < 1:
            raise ConfigError("max_category_depth must be at least 1")
        if self.workers < 1:
            raise ConfigError("workers must be at least 1")
        if self.upsert_batch_size < 1:
            raise ConfigError("upsert_batch_size must be at least 1")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone '{self.timezone}'") from e

    @property
    def tzinfo(self) -> ZoneInfo:
        """The reference timezone as a tzinfo object."""
        return ZoneInfo(self.timezone)

    def with_overrides(self, **changes: object) -> AggregationConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> AggregationConfig:
        """Build a config from DAILY_OPS_* environment variables.

        Recognised variables: DAILY_OPS_BOUNDARY_HOUR, DAILY_OPS_TIMEZONE,
        DAILY_OPS_MAX_CATEGORY_DEPTH, DAILY_OPS_WORKERS,
        DAILY_OPS_UPSERT_BATCH_SIZE, DAILY_OPS_DEFAULT_HOURLY_WAGE.
        Unset variables keep their defaults.

        Raises:
            ConfigError: If a variable cannot be parsed.

        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        int_fields = {
            "BOUNDARY_HOUR": "boundary_hour",
            "MAX_CATEGORY_DEPTH": "max_category_depth",
            "WORKERS": "workers",
            "UPSERT_BATCH_SIZE": "upsert_batch_size",
        }
        for suffix, name in int_fields.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is None or raw.strip() == "":
                continue
            try:
                kwargs[name] = int(raw.strip().strip('"').strip("'"))
            except ValueError as e:
                raise ConfigError(f"{ENV_PREFIX}{suffix} must be an integer, got {raw!r}") from e

        tz = env.get(ENV_PREFIX + "TIMEZONE")
        if tz:
            kwargs["timezone"] = tz.strip().strip('"').strip("'")

        wage = env.get(ENV_PREFIX + "DEFAULT_HOURLY_WAGE")
        if wage:
            try:
                kwargs["default_hourly_wage"] = float(wage)
            except ValueError as e:
                raise ConfigError(
                    f"{ENV_PREFIX}DEFAULT_HOURLY_WAGE must be a number, got {wage!r}"
                ) from e

        return cls(**kwargs)  # type: ignore[arg-type]
