"""Export orchestration: wire configuration into a single extraction run."""

from __future__ import annotations

from typing import Any, BinaryIO, Callable

from dynamo_export.config import ExportConfig, get_config
from dynamo_export.engine import CancelSignal, ExtractionEngine, RowTransform
from dynamo_export.fetcher import DynamoPageFetcher, PageFetcher, create_dynamodb_client
from dynamo_export.formatters import get_formatter
from dynamo_export.logging_utils import CorrelationIdFilter, get_logger
from dynamo_export.models import ExtractionMetrics
from dynamo_export.sinks import FileSink, create_sink

logger = get_logger(__name__)


def run_export(
    config: ExportConfig | None = None,
    key_condition: Any = None,
    filter_condition: Any = None,
    row_transform: RowTransform | None = None,
    stream: BinaryIO | None = None,
    callback: Callable[[Any], Any] | None = None,
    client=None,
    fetcher: PageFetcher | None = None,
    cancel_event: CancelSignal | None = None,
) -> ExtractionMetrics:
    """Export one table (or index) to a file, a stream or a callback.

    An explicit ``stream`` or ``callback`` takes precedence over
    ``config.output_path``. A failed run leaves whatever was already
    written in place and re-raises the error.
    """
    if config is None:
        config = get_config()

    correlation_id = CorrelationIdFilter.generate_correlation_id()
    spec = config.to_query_spec(key_condition=key_condition, filter_condition=filter_condition)
    formatter = get_formatter(config.output_format, delimiter=config.delimiter)

    if stream is None and callback is None:
        sink = create_sink(path=config.output_path, high_water_mark=config.drain_high_water_mark_bytes)
    else:
        sink = create_sink(stream=stream, callback=callback, high_water_mark=config.drain_high_water_mark_bytes)

    logger.info(
        "Starting table export",
        extra={
            "table": spec.table_name,
            "index": spec.index_name,
            "page_limit": spec.limit,
            "output_format": formatter.output_format.value,
            "sink": type(sink).__name__,
            "has_key_condition": key_condition is not None,
            "has_filter": filter_condition is not None,
        },
    )

    engine = None
    try:
        if fetcher is None:
            fetcher = DynamoPageFetcher(client if client is not None else create_dynamodb_client(config))
        engine = ExtractionEngine(
            spec,
            fetcher,
            sink,
            formatter,
            row_transform=row_transform,
            cancel_event=cancel_event,
            correlation_id=correlation_id,
        )
        return engine.run()
    finally:
        sink.close()
        if engine is not None and isinstance(sink, FileSink):
            _record_output_file(engine.metrics, sink)


def _record_output_file(metrics: ExtractionMetrics, sink: FileSink) -> None:
    try:
        meta = sink.file_metadata()
    except OSError as e:
        logger.warning("Could not stat output file", extra={"path": str(sink.path), "error": str(e)})
        return
    metrics.output_file_path = meta["path"]
    metrics.output_file_size_bytes = meta["size_bytes"]
    metrics.output_file_sha256 = meta["sha256"]
    logger.info("Output file written", extra=meta)

