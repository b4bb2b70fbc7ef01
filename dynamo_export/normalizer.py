"""Flatten type-tagged DynamoDB items into rows of scalars."""

from __future__ import annotations

import base64
import json
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer

from dynamo_export.exceptions import MalformedItemError
from dynamo_export.models import Row

_deserializer = TypeDeserializer()


def normalize_item(item: dict[str, Any]) -> Row:
    """Convert one raw item into a Row.

    Keys are trimmed. Maps, lists and sets become their canonical JSON text;
    everything else stays a plain scalar. Integral numbers become ``int``,
    other numbers stay exact ``Decimal`` values.
    """
    if not isinstance(item, dict):
        raise MalformedItemError(f"Item must be a mapping, got {type(item).__name__}")

    row: Row = {}
    for key, tagged in item.items():
        name = key.strip()
        if name in row:
            raise MalformedItemError(
                f"Attribute {key!r} collides with {name!r} once trimmed",
                details={"attribute": key, "column": name},
            )
        value = _plain(key, _deserialize(key, tagged))
        if isinstance(value, (dict, list)):
            value = canonical_json(value)
        row[name] = value
    return row


def normalize_items(items: list[dict[str, Any]]) -> list[Row]:
    return [normalize_item(item) for item in items]


def json_default(value: Any) -> Any:
    """``json.dumps`` hook for Decimal: a JSON number when float is exact, else its plain digits."""
    if isinstance(value, Decimal):
        as_float = float(value)
        if Decimal(repr(as_float)) == value:
            return as_float
        return format(value, "f")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonical_json(value: Any) -> str:
    """Stable JSON text: sorted keys, no whitespace, non-ASCII kept."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=json_default)


def _deserialize(key: str, tagged: Any) -> Any:
    try:
        return _deserializer.deserialize(tagged)
    except (TypeError, ValueError, AttributeError, IndexError) as e:
        raise MalformedItemError(
            f"Attribute {key!r} has an unrecognized type tag",
            details={"attribute": key, "value": repr(tagged)[:200], "error": str(e)},
        ) from e
    except ArithmeticError as e:
        raise MalformedItemError(
            f"Attribute {key!r} holds a number DynamoDB cannot represent",
            details={"attribute": key, "value": repr(tagged)[:200], "error": type(e).__name__},
        ) from e


def _plain(key: str, value: Any) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        # Unparseable N strings come back from the deserializer as NaN.
        if not value.is_finite():
            raise MalformedItemError(
                f"Attribute {key!r} holds a malformed number",
                details={"attribute": key, "value": str(value)},
            )
        return int(value) if value == value.to_integral_value() else value
    if isinstance(value, Binary):
        return base64.b64encode(value.value).decode("ascii")
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {str(k): _plain(key, v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(key, v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(key, v) for v in value)
    return value
