"""CLI entry point for the table export engine."""

from __future__ import annotations

import argparse
import signal
import sys
import threading

from boto3.dynamodb.conditions import Key

from dynamo_export.config import get_config
from dynamo_export.exceptions import ConfigurationError, ExportError, ExtractionCancelledError
from dynamo_export.logging_utils import get_logger, setup_logging
from dynamo_export.models import OutputFormat
from dynamo_export.pipeline import run_export

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="dynamo-export",
        description="Export a DynamoDB table or index to CSV or JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dynamo-export --table orders --output orders.csv
  dynamo-export --table orders --index by_customer --partition-key customer_id=c-42 --output -
  dynamo-export --table orders --format json --limit 500 --output orders.json
        """,
    )

    parser.add_argument("--table", type=str, help="Table to export (default: TABLE_NAME)")
    parser.add_argument("--index", type=str, help="Secondary index to read")
    parser.add_argument("--limit", type=int, help="Items per page (default: 2000)")
    parser.add_argument(
        "--format",
        choices=[OutputFormat.CSV.value, OutputFormat.JSON.value],
        default=None,
        help="Output format (default: csv)",
    )
    parser.add_argument("--output", type=str, help="Output file to append to, or '-' for stdout")
    parser.add_argument("--delimiter", type=str, help="CSV field delimiter (default: ',')")
    parser.add_argument(
        "--partition-key",
        type=str,
        metavar="NAME=VALUE",
        help="Query items whose key NAME equals VALUE instead of scanning",
    )

    parser.add_argument("--region", type=str, help="AWS region")
    parser.add_argument("--endpoint-url", type=str, help="Override DynamoDB endpoint (e.g. DynamoDB Local)")
    parser.add_argument("--profile", type=str, help="AWS profile name")

    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    parser.add_argument("--log-format", choices=["json", "text"], default="json")

    parsed = parser.parse_args(argv)

    if parsed.limit is not None and parsed.limit <= 0:
        parser.error("--limit must be a positive integer")
    if parsed.partition_key is not None and "=" not in parsed.partition_key:
        parser.error("--partition-key must look like NAME=VALUE")

    return parsed


def build_key_condition(partition_key: str | None):
    if not partition_key:
        return None
    name, value = partition_key.split("=", 1)
    return Key(name.strip()).eq(value)


def install_sigterm_handler(cancel_event: threading.Event):
    """Set ``cancel_event`` on SIGTERM so the export stops before its next page fetch.

    Returns the handler it replaced, or None when signals cannot be handled
    from the calling thread.
    """

    def _on_sigterm(signum, frame):
        logger.warning("SIGTERM received, stopping before the next page")
        cancel_event.set()

    try:
        previous = signal.signal(signal.SIGTERM, _on_sigterm)
    except ValueError:
        logger.debug("Not on the main thread; SIGTERM will not cancel the export")
        return None
    return previous if previous is not None else signal.SIG_DFL


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI execution."""
    args = parse_args(argv)
    setup_logging(level=args.log_level, json_format=(args.log_format == "json"))

    to_stdout = args.output == "-"
    cancel_event = threading.Event()
    previous_handler = install_sigterm_handler(cancel_event)

    try:
        config = get_config(
            table_name=args.table,
            index_name=args.index,
            page_limit=args.limit,
            output_format=args.format,
            output_path=None if to_stdout else args.output,
            delimiter=args.delimiter,
            aws_region=args.region,
            aws_endpoint_url=args.endpoint_url,
            aws_profile=args.profile,
        )

        metrics = run_export(
            config=config,
            key_condition=build_key_condition(args.partition_key),
            stream=sys.stdout.buffer if to_stdout else None,
            cancel_event=cancel_event,
        )
        return 0 if metrics.success else 1

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except ExtractionCancelledError as e:
        logger.warning(f"Export cancelled: {e}")
        return 143
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Export interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
