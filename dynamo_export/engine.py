"""Extraction loop: fetch, normalize, accumulate schema, format, deliver."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from time import perf_counter
from typing import Callable, Protocol

from dynamo_export.exceptions import (
    ExportError,
    ExtractionCancelledError,
    FetchError,
    SinkConfigurationError,
    TransformError,
)
from dynamo_export.fetcher import PageFetcher
from dynamo_export.formatters import Formatter
from dynamo_export.logging_utils import get_logger, log_operation
from dynamo_export.models import ContinuationToken, EngineState, ExtractionMetrics, Page, QuerySpec, Row
from dynamo_export.normalizer import normalize_items
from dynamo_export.schema import HeaderSet
from dynamo_export.sinks import Sink

logger = get_logger(__name__)


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


RowTransform = Callable[[Row, "ExtractionEngine"], Row]


class ExtractionEngine:
    """Streams every page of a table read to a sink, one page at a time.

    Pages are fetched strictly in sequence. The next fetch is issued only
    after the previous batch was delivered and, if the sink asked for it,
    drained. Only the current page's rows are held in memory.
    """

    def __init__(
        self,
        spec: QuerySpec,
        fetcher: PageFetcher,
        sink: Sink,
        formatter: Formatter,
        row_transform: RowTransform | None = None,
        cancel_event: CancelSignal | None = None,
        headers: HeaderSet | None = None,
        correlation_id: str = "",
    ):
        if sink is None:
            raise SinkConfigurationError("An output sink is required")
        if not formatter.is_text and not sink.accepts_records:
            raise SinkConfigurationError(
                f"Output format '{formatter.output_format.value}' needs a callback sink",
                details={"sink": type(sink).__name__},
            )
        if row_transform is not None and not callable(row_transform):
            raise TransformError("row_transform must be callable")

        self.spec = spec
        self.fetcher = fetcher
        self.sink = sink
        self.formatter = formatter
        self.row_transform = row_transform
        self.cancel_event = cancel_event
        self.headers = headers if headers is not None else HeaderSet()
        self.write_count = 0
        self.state = EngineState.IDLE
        self.metrics = ExtractionMetrics(
            correlation_id=correlation_id,
            table_name=spec.table_name,
            index_name=spec.index_name,
            output_format=formatter.output_format.value,
        )

    # Schema helpers for row transforms that add synthetic columns.
    def append_header(self, name: str) -> HeaderSet:
        return self.headers.append(name)

    def prepend_header(self, name: str) -> HeaderSet:
        return self.headers.prepend(name)

    def _set_state(self, state: EngineState) -> None:
        self.state = state
        self.metrics.state = state.value

    def run(self) -> ExtractionMetrics:
        """Read until the continuation token runs out. Raises on the first fatal error."""
        if self.state is not EngineState.IDLE:
            raise ExportError(f"Engine has already run (state={self.state.value})")

        start_time = perf_counter()
        token: ContinuationToken | None = None

        try:
            with log_operation(
                logger,
                "table_extraction",
                table=self.spec.table_name,
                index=self.spec.index_name,
                page_limit=self.spec.limit,
                output_format=self.formatter.output_format.value,
            ):
                while True:
                    self._check_cancelled()
                    page = self._fetch(token)
                    self._process_page(page)
                    if page.next_token is None:
                        break
                    token = page.next_token

            self._set_state(EngineState.DONE)
            self.metrics.success = True

        except ExtractionCancelledError as e:
            self._fail(e, EngineState.CANCELLED)
            raise
        except ExportError as e:
            self._fail(e, EngineState.FAILED)
            raise
        except Exception as e:
            self._fail(e, EngineState.FAILED)
            raise ExportError(f"Unexpected error: {e}") from e
        finally:
            self.metrics.end_time = datetime.now(timezone.utc)
            self.metrics.duration_seconds = perf_counter() - start_time
            self.metrics.column_count = len(self.headers)

        logger.info("Extraction completed", extra=self.metrics.to_dict())
        return self.metrics

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ExtractionCancelledError(
                "Extraction cancelled",
                details={"pages_fetched": self.metrics.pages_fetched, "rows_delivered": self.write_count},
            )

    def _fetch(self, token: ContinuationToken | None) -> Page:
        self._set_state(EngineState.FETCHING)
        try:
            page = self.fetcher.fetch_page(self.spec, token)
        except ExportError:
            raise
        except Exception as e:
            raise FetchError(f"Page fetch failed: {e}", details={"error_type": type(e).__name__}) from e

        self.metrics.pages_fetched += 1
        self.metrics.rows_fetched += len(page.items)
        logger.debug(
            f"Fetched page {self.metrics.pages_fetched}",
            extra={"items_in_page": len(page.items), "has_more": page.has_more},
        )
        return page

    def _process_page(self, page: Page) -> None:
        self._set_state(EngineState.NORMALIZING)
        rows = normalize_items(page.items)

        self._set_state(EngineState.ACCUMULATING)
        for row in rows:
            self.headers.observe(row)
        self.metrics.column_count = len(self.headers)

        if self.row_transform is not None:
            rows = [self._transform(row) for row in rows]

        if not rows:
            # Nothing to deliver; the header goes out with the first non-empty batch.
            self.metrics.empty_pages += 1
            return

        self._set_state(EngineState.FORMATTING)
        payload = self.formatter.render(self.headers, rows, is_first_batch=self.write_count == 0)

        self._set_state(EngineState.DELIVERING)
        self.metrics.bytes_delivered += self.sink.deliver(payload)
        self.metrics.payloads_delivered += 1
        self.write_count += len(rows)
        self.metrics.rows_delivered = self.write_count

        if self.sink.needs_drain:
            self.sink.drain()
            self.metrics.drains += 1

    def _transform(self, row: Row) -> Row:
        try:
            result = self.row_transform(row, self)
        except Exception as e:
            raise TransformError(
                f"Row transform failed: {e}",
                details={"error_type": type(e).__name__, "rows_delivered": self.write_count},
            ) from e

        if not isinstance(result, Mapping):
            raise TransformError(f"Row transform must return a mapping, got {type(result).__name__}")
        return dict(result)

    def _fail(self, error: Exception, state: EngineState) -> None:
        self._set_state(state)
        self.metrics.success = False
        self.metrics.error_message = str(error)
        self.metrics.error_type = type(error).__name__
        logger.error(f"Extraction stopped: {error}", extra=self.metrics.to_dict())
