"""Metadata tracking for aggregation stages.

Every run of an aggregation stage over a date range leaves a small JSON file
under ``<stage_dir>/_meta/``. It records what ran, with which stage version
and how it ended, so callers can skip ranges that are already complete.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class StageMetadata:
    """Metadata for one stage run.

    Attributes:
        stage: Stage name ("sales" or "labor").
        start_date: Start of the processed range (YYYY-MM-DD).
        end_date: End of the processed range (YYYY-MM-DD).
        locations: Location filter, empty for all locations.
        version: Version string for the stage logic.
        last_run: ISO timestamp of when the stage was run.
        status: "ok", "partial", "empty" or "failed".
        records_aggregated: Aggregates produced.
        records_written: Documents upserted.
        message: Human-readable summary or error.
    """

    stage: str
    start_date: str
    end_date: str
    version: str
    last_run: str
    status: str
    locations: list[str] = field(default_factory=list)
    records_aggregated: int = 0
    records_written: int = 0
    message: str = ""


def _meta_path(
    stage_dir: Path,
    stage: str,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
) -> Path:
    """Get path to metadata file for a date range and optional location."""
    meta_dir = stage_dir / "_meta"
    meta_dir.mkdir(parents=True, exist_ok=True)
    suffix = f"_{location_id}" if location_id else ""
    return meta_dir / f"{stage}_{start_date}_{end_date}{suffix}.json"


def write_metadata(stage_dir: Path, metadata: StageMetadata) -> Path:
    """Write the metadata file for a stage run and return its path."""
    location_id = metadata.locations[0] if len(metadata.locations) == 1 else None
    path = _meta_path(stage_dir, metadata.stage, metadata.start_date, metadata.end_date, location_id)
    path.write_text(json.dumps(asdict(metadata), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("Wrote metadata: %s", path)
    return path


def read_metadata(
    stage_dir: Path,
    stage: str,
    start_date: str,
    end_date: str,
    location_id: Optional[str] = None,
) -> Optional[StageMetadata]:
    """Read the metadata file for a date range, if it exists."""
    path = _meta_path(stage_dir, stage, start_date, end_date, location_id)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return StageMetadata(**data)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Error reading metadata %s: %s", path, e)
        return None


def should_run_stage(
    stage_dir: Path,
    stage: str,
    start_date: str,
    end_date: str,
    version: str,
    location_id: Optional[str] = None,
) -> bool:
    """Check if a stage needs to run based on metadata.

    Returns True if:
    - No metadata exists for this date range
    - Metadata status is not "ok" or "empty"
    - Metadata version doesn't match current version
    """
    meta = read_metadata(stage_dir, stage, start_date, end_date, location_id)
    if meta is None:
        return True
    if meta.status not in ("ok", "empty"):
        return True
    if meta.version != version:
        return True
    return False
