"""Single-page Scan/Query requests against DynamoDB."""

from __future__ import annotations

from typing import Any

import boto3
from boto3.dynamodb.conditions import ConditionExpressionBuilder
from boto3.dynamodb.types import TypeSerializer
from boto3.exceptions import Boto3Error
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from dynamo_export.config import ExportConfig
from dynamo_export.exceptions import AuthenticationError, ConfigurationError, FetchError
from dynamo_export.logging_utils import get_logger
from dynamo_export.models import ContinuationToken, Page, QuerySpec

logger = get_logger(__name__)

AUTH_ERROR_CODES = {
    "AccessDeniedException",
    "ExpiredTokenException",
    "InvalidSignatureException",
    "UnrecognizedClientException",
}


def create_dynamodb_client(config: ExportConfig):
    """Create a DynamoDB client; transport retries live on the client config."""
    client_config = Config(
        retries={"max_attempts": config.aws_max_attempts, "mode": "standard"},
        connect_timeout=config.aws_connect_timeout_seconds,
        read_timeout=config.aws_read_timeout_seconds,
    )
    try:
        session = boto3.session.Session(profile_name=config.aws_profile, region_name=config.aws_region)
        return session.client("dynamodb", endpoint_url=config.aws_endpoint_url, config=client_config)
    except ProfileNotFound as e:
        raise ConfigurationError(f"AWS profile not found: {config.aws_profile}") from e
    except BotoCoreError as e:
        raise ConfigurationError(f"Failed to create DynamoDB client: {e}") from e


class PageFetcher:
    """Performs exactly one page request per call. Never retries."""

    def fetch_page(self, spec: QuerySpec, token: ContinuationToken | None = None) -> Page:
        raise NotImplementedError


class DynamoPageFetcher(PageFetcher):
    """Scans the table (or index), or queries it when a key condition is given."""

    def __init__(self, client):
        self.client = client
        self._serializer = TypeSerializer()

    def build_request(self, spec: QuerySpec, token: ContinuationToken | None = None) -> tuple[str, dict]:
        """Return the client operation name and its keyword arguments."""
        params: dict[str, Any] = {"TableName": spec.table_name, "Limit": spec.limit}
        if spec.index_name:
            params["IndexName"] = spec.index_name
        if token is not None:
            params["ExclusiveStartKey"] = token

        # One builder for both expressions keeps placeholder names unique.
        builder = ConditionExpressionBuilder()
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        try:
            if spec.key_condition is not None:
                built = builder.build_expression(spec.key_condition, is_key_condition=True)
                params["KeyConditionExpression"] = built.condition_expression
                names.update(built.attribute_name_placeholders)
                values.update(built.attribute_value_placeholders)
            if spec.filter_condition is not None:
                built = builder.build_expression(spec.filter_condition)
                params["FilterExpression"] = built.condition_expression
                names.update(built.attribute_name_placeholders)
                values.update(built.attribute_value_placeholders)

            if names:
                params["ExpressionAttributeNames"] = names
            if values:
                params["ExpressionAttributeValues"] = {k: self._serializer.serialize(v) for k, v in values.items()}
        except (Boto3Error, TypeError) as e:
            raise ConfigurationError(f"Invalid query predicate: {e}", details={"table": spec.table_name}) from e

        return ("query" if spec.is_query else "scan"), params

    def fetch_page(self, spec: QuerySpec, token: ContinuationToken | None = None) -> Page:
        operation, params = self.build_request(spec, token)
        details = {"table": spec.table_name, "index": spec.index_name, "operation": operation}

        try:
            response = getattr(self.client, operation)(**params)
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            err_details = {**details, "error_code": code, "error_message": error.get("Message", "")}
            if code in AUTH_ERROR_CODES:
                raise AuthenticationError(f"DynamoDB rejected credentials ({code})", details=err_details) from e
            raise FetchError(f"DynamoDB {operation} failed ({code})", details=err_details) from e
        except NoCredentialsError as e:
            raise AuthenticationError("No AWS credentials found", details=details) from e
        except BotoCoreError as e:
            raise FetchError(f"DynamoDB {operation} request failed: {e}", details=details) from e

        if not isinstance(response, dict):
            raise FetchError(f"Unexpected response type: {type(response).__name__}", details=details)

        items = response.get("Items", [])
        if not isinstance(items, list):
            raise FetchError(f"Items is not a list (got {type(items).__name__})", details=details)

        next_token = response.get("LastEvaluatedKey") or None
        logger.debug(
            f"Fetched {operation} page",
            extra={**details, "items_in_page": len(items), "has_more": next_token is not None},
        )
        return Page(items=items, next_token=next_token)
