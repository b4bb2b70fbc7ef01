"""Paginated DynamoDB table export with incremental schema discovery."""

from dynamo_export.config import ExportConfig, get_config
from dynamo_export.engine import ExtractionEngine
from dynamo_export.exceptions import (
    ConfigurationError,
    ExportError,
    ExtractionCancelledError,
    FetchError,
    MalformedItemError,
    SinkConfigurationError,
    SinkError,
    TransformError,
)
from dynamo_export.fetcher import DynamoPageFetcher, PageFetcher
from dynamo_export.formatters import get_formatter
from dynamo_export.models import EngineState, ExtractionMetrics, OutputFormat, Page, QuerySpec
from dynamo_export.pipeline import run_export
from dynamo_export.schema import HeaderSet
from dynamo_export.sinks import CallbackSink, FileSink, StreamSink, create_sink

__all__ = [
    "ExportConfig",
    "get_config",
    "ExtractionEngine",
    "ExportError",
    "ConfigurationError",
    "SinkConfigurationError",
    "FetchError",
    "MalformedItemError",
    "TransformError",
    "SinkError",
    "ExtractionCancelledError",
    "PageFetcher",
    "DynamoPageFetcher",
    "get_formatter",
    "EngineState",
    "ExtractionMetrics",
    "OutputFormat",
    "Page",
    "QuerySpec",
    "run_export",
    "HeaderSet",
    "CallbackSink",
    "FileSink",
    "StreamSink",
    "create_sink",
]
