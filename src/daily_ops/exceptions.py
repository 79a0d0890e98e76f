"""Domain-specific exceptions for daily-ops aggregation.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from DailyOpsError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from daily_ops.pipeline import BatchResult


class DailyOpsError(Exception):
    """Base exception for all daily-ops aggregation errors.

    Users can catch this exception to handle any error raised by the package.
    """

    pass


class ConfigError(DailyOpsError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided (e.g. boundary hour 25)
    - Environment overrides cannot be parsed
    - The reference timezone is unknown
    """

    pass


class InputValidationError(DailyOpsError, ValueError):
    """Raised when a batch is requested with an invalid scope.

    This exception is raised before anything is fetched when:
    - start_date or end_date is missing or not YYYY-MM-DD
    - start_date is after end_date
    - location_id is given but empty
    """

    pass


class ETLError(DailyOpsError):
    """Raised when a pipeline stage fails.

    This exception is raised when:
    - Fetching raw documents fails
    - Writing aggregated documents fails
    """

    pass


class ExtractionError(ETLError):
    """Raised when raw documents cannot be read from the source.

    This exception is raised when:
    - A raw file cannot be opened or decoded
    - The source backend is unreachable
    """

    pass


class PersistenceError(ETLError):
    """Raised when the upsert of aggregated documents fails.

    Attributes:
        written: Number of documents successfully written before the failure.
            Keys already written stay updated; the caller may retry the range.
        result: Optional partial BatchResult, attached by the pipeline.
    """

    def __init__(
        self,
        message: str,
        written: int = 0,
        result: Optional[BatchResult] = None,
    ) -> None:
        super().__init__(message)
        self.written = written
        self.result = result


class DuplicateKeyError(PersistenceError):
    """Raised by a store when one bulk batch targets the same key twice."""

    def __init__(self, key: Any, written: int = 0) -> None:
        super().__init__(f"Duplicate key in bulk write batch: {key!r}", written=written)
        self.key = key


class MalformedRecordWarning(UserWarning):
    """Recorded (never raised) when a raw record is skipped.

    Attributes:
        record_id: Identifier of the offending raw record, if it has one.
        reason: Human-readable explanation.
    """

    def __init__(self, reason: str, record_id: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.record_id = record_id

    def __str__(self) -> str:
        if self.record_id:
            return f"record {self.record_id}: {self.reason}"
        return self.reason
