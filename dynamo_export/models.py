"""Data models for the table export engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

DEFAULT_PAGE_LIMIT = 2000

# A normalized item: column name -> scalar, or the JSON text of a composite value.
Scalar = Union[str, int, float, Decimal, bool, None]
Row = dict[str, Scalar]

# Opaque continuation token; for DynamoDB this is the LastEvaluatedKey map.
ContinuationToken = dict[str, Any]


@dataclass(frozen=True)
class QuerySpec:
    """What to read. Fixed for the lifetime of one extraction run."""

    table_name: str
    index_name: str | None = None
    limit: int = DEFAULT_PAGE_LIMIT
    key_condition: Any = None
    filter_condition: Any = None

    def __post_init__(self) -> None:
        if not self.table_name:
            raise ValueError("table_name is required")
        if self.limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {self.limit}")

    @property
    def is_query(self) -> bool:
        return self.key_condition is not None


@dataclass
class Page:
    """One fetched page of raw, type-tagged items."""

    items: list[dict[str, Any]]
    next_token: ContinuationToken | None = None

    @property
    def has_more(self) -> bool:
        return self.next_token is not None


class OutputFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    RECORDS = "records"


class EngineState(str, Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    NORMALIZING = "NORMALIZING"
    ACCUMULATING = "ACCUMULATING"
    FORMATTING = "FORMATTING"
    DELIVERING = "DELIVERING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in {EngineState.DONE, EngineState.FAILED, EngineState.CANCELLED}


@dataclass
class ExtractionMetrics:
    """Metrics collected during one extraction run."""

    correlation_id: str = ""
    table_name: str = ""
    index_name: str | None = None
    output_format: str = OutputFormat.CSV.value
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    duration_seconds: float = 0.0

    state: str = EngineState.IDLE.value

    pages_fetched: int = 0
    empty_pages: int = 0
    rows_fetched: int = 0
    rows_delivered: int = 0
    payloads_delivered: int = 0
    bytes_delivered: int = 0
    drains: int = 0
    column_count: int = 0

    output_file_path: str = ""
    output_file_size_bytes: int = 0
    output_file_sha256: str = ""

    success: bool = False
    error_message: str = ""
    error_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "table_name": self.table_name,
            "index_name": self.index_name,
            "output_format": self.output_format,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": round(self.duration_seconds, 2),
            "state": self.state,
            "pages_fetched": self.pages_fetched,
            "empty_pages": self.empty_pages,
            "rows_fetched": self.rows_fetched,
            "rows_delivered": self.rows_delivered,
            "payloads_delivered": self.payloads_delivered,
            "bytes_delivered": self.bytes_delivered,
            "drains": self.drains,
            "column_count": self.column_count,
            "output_file_path": self.output_file_path,
            "output_file_size_bytes": self.output_file_size_bytes,
            "output_file_sha256": self.output_file_sha256,
            "success": self.success,
            "error_message": self.error_message,
            "error_type": self.error_type,
        }
