"""Per-batch rendering of rows into the export's output format."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Sequence

import pandas as pd

from dynamo_export.exceptions import ConfigurationError
from dynamo_export.models import OutputFormat, Row
from dynamo_export.normalizer import json_default
from dynamo_export.schema import HeaderSet

LINE_TERMINATOR = "\r\n"


class Formatter:
    """Renders one batch of rows given the current column set."""

    output_format: OutputFormat
    # False when the payload is structured data rather than text.
    is_text = True

    def render(self, headers: HeaderSet, rows: Sequence[Row], is_first_batch: bool) -> Any:
        raise NotImplementedError


class DelimitedTextFormatter(Formatter):
    """CSV-style text with a single header line.

    The header line is written only with the first batch. Columns first
    seen in later batches get cells in those rows but no header cell, so
    they stay unlabelled in the output.
    """

    output_format = OutputFormat.CSV

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def render(self, headers: HeaderSet, rows: Sequence[Row], is_first_batch: bool) -> str:
        columns = list(headers.snapshot())
        if not rows or not columns:
            return ""

        data = [[_cell(row.get(col)) for col in columns] for row in rows]
        df = pd.DataFrame(data, columns=columns, dtype=object)
        return df.to_csv(
            index=False,
            header=is_first_batch,
            sep=self.delimiter,
            lineterminator=LINE_TERMINATOR,
            na_rep="",
        )


class JsonArrayFormatter(Formatter):
    """Each batch becomes one JSON array on its own line."""

    output_format = OutputFormat.JSON

    def render(self, headers: HeaderSet, rows: Sequence[Row], is_first_batch: bool) -> str:
        if not rows:
            return ""
        return json.dumps(list(rows), ensure_ascii=False, separators=(",", ":"), default=json_default) + "\n"


class RawRecordsFormatter(Formatter):
    """Hands rows through as dicts for in-memory consumers."""

    output_format = OutputFormat.RECORDS
    is_text = False

    def render(self, headers: HeaderSet, rows: Sequence[Row], is_first_batch: bool) -> list[Row]:
        return [dict(row) for row in rows]


def _cell(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    return value


def get_formatter(output_format: OutputFormat | str, delimiter: str = ",") -> Formatter:
    try:
        output_format = OutputFormat(output_format)
    except ValueError as e:
        valid = [f.value for f in OutputFormat]
        raise ConfigurationError(f"Unknown output format {output_format!r}; expected one of {valid}") from e

    if output_format is OutputFormat.CSV:
        return DelimitedTextFormatter(delimiter=delimiter)
    if output_format is OutputFormat.JSON:
        return JsonArrayFormatter()
    return RawRecordsFormatter()
