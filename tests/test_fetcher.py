"""Tests for dynamo_export.fetcher — Scan/Query requests against a stubbed client."""

from unittest.mock import MagicMock, patch

import boto3
import pytest
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import EndpointConnectionError, NoCredentialsError, ProfileNotFound
from botocore.stub import Stubber

from dynamo_export.exceptions import AuthenticationError, ConfigurationError, FetchError
from dynamo_export.fetcher import DynamoPageFetcher, create_dynamodb_client
from dynamo_export.models import QuerySpec


@pytest.fixture
def client():
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


class TestBuildRequest:
    def test_plain_scan(self):
        operation, params = DynamoPageFetcher(MagicMock()).build_request(QuerySpec(table_name="orders"))
        assert operation == "scan"
        assert params == {"TableName": "orders", "Limit": 2000}

    def test_scan_with_index_and_token(self):
        spec = QuerySpec(table_name="orders", index_name="by_day", limit=10)
        token = {"id": {"N": "5"}}
        operation, params = DynamoPageFetcher(MagicMock()).build_request(spec, token)
        assert operation == "scan"
        assert params["IndexName"] == "by_day"
        assert params["ExclusiveStartKey"] is token

    def test_scan_with_filter(self):
        spec = QuerySpec(table_name="orders", filter_condition=Attr("status").eq("open"))
        operation, params = DynamoPageFetcher(MagicMock()).build_request(spec)
        assert operation == "scan"
        assert params["FilterExpression"] == "#n0 = :v0"
        assert params["ExpressionAttributeNames"] == {"#n0": "status"}
        assert params["ExpressionAttributeValues"] == {":v0": {"S": "open"}}

    def test_query_with_key_condition_and_filter(self):
        spec = QuerySpec(
            table_name="orders",
            key_condition=Key("customer_id").eq("c-1"),
            filter_condition=Attr("total").gt(10),
        )
        operation, params = DynamoPageFetcher(MagicMock()).build_request(spec)
        assert operation == "query"
        assert params["KeyConditionExpression"] == "#n0 = :v0"
        assert params["FilterExpression"] == "#n1 > :v1"
        assert params["ExpressionAttributeNames"] == {"#n0": "customer_id", "#n1": "total"}
        assert params["ExpressionAttributeValues"] == {":v0": {"S": "c-1"}, ":v1": {"N": "10"}}

    def test_query_passes_continuation_token(self):
        spec = QuerySpec(table_name="orders", key_condition=Key("pk").eq("a"))
        token = {"pk": {"S": "a"}, "sk": {"S": "z"}}
        _, params = DynamoPageFetcher(MagicMock()).build_request(spec, token)
        assert params["ExclusiveStartKey"] == token

    def test_invalid_predicate(self):
        spec = QuerySpec(table_name="orders", filter_condition="status = open")
        with pytest.raises(ConfigurationError, match="Invalid query predicate"):
            DynamoPageFetcher(MagicMock()).build_request(spec)

    def test_unserializable_value(self):
        spec = QuerySpec(table_name="orders", filter_condition=Attr("price").gt(1.5))
        with pytest.raises(ConfigurationError):
            DynamoPageFetcher(MagicMock()).build_request(spec)


class TestFetchPage:
    def test_scan_page_with_more(self, client):
        spec = QuerySpec(table_name="orders", limit=2)
        with Stubber(client) as stubber:
            stubber.add_response(
                "scan",
                {
                    "Items": [{"id": {"N": "1"}}, {"id": {"N": "2"}}],
                    "Count": 2,
                    "ScannedCount": 2,
                    "LastEvaluatedKey": {"id": {"N": "2"}},
                },
                {"TableName": "orders", "Limit": 2},
            )
            page = DynamoPageFetcher(client).fetch_page(spec)
        assert len(page.items) == 2
        assert page.next_token == {"id": {"N": "2"}}
        assert page.has_more is True

    def test_last_page(self, client):
        spec = QuerySpec(table_name="orders", limit=2)
        token = {"id": {"N": "2"}}
        with Stubber(client) as stubber:
            stubber.add_response(
                "scan",
                {"Items": [{"id": {"N": "3"}}], "Count": 1, "ScannedCount": 1},
                {"TableName": "orders", "Limit": 2, "ExclusiveStartKey": token},
            )
            page = DynamoPageFetcher(client).fetch_page(spec, token)
        assert page.next_token is None
        assert page.has_more is False

    def test_missing_items_is_empty_page(self, client):
        with Stubber(client) as stubber:
            stubber.add_response("scan", {"Count": 0, "ScannedCount": 0})
            page = DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))
        assert page.items == []
        assert page.next_token is None

    def test_query_request(self, client):
        spec = QuerySpec(table_name="orders", index_name="by_customer", key_condition=Key("customer_id").eq("c-1"))
        with Stubber(client) as stubber:
            stubber.add_response(
                "query",
                {"Items": [{"customer_id": {"S": "c-1"}}], "Count": 1, "ScannedCount": 1},
                {
                    "TableName": "orders",
                    "Limit": 2000,
                    "IndexName": "by_customer",
                    "KeyConditionExpression": "#n0 = :v0",
                    "ExpressionAttributeNames": {"#n0": "customer_id"},
                    "ExpressionAttributeValues": {":v0": {"S": "c-1"}},
                },
            )
            page = DynamoPageFetcher(client).fetch_page(spec)
        assert page.items == [{"customer_id": {"S": "c-1"}}]

    def test_service_error_raises_fetch_error(self, client):
        with Stubber(client) as stubber:
            stubber.add_client_error("scan", service_error_code="ResourceNotFoundException", service_message="no table")
            with pytest.raises(FetchError) as exc_info:
                DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="missing"))
        assert not isinstance(exc_info.value, AuthenticationError)
        assert exc_info.value.details["error_code"] == "ResourceNotFoundException"
        assert exc_info.value.details["table"] == "missing"

    def test_access_denied_raises_authentication_error(self, client):
        with Stubber(client) as stubber:
            stubber.add_client_error("scan", service_error_code="AccessDeniedException", http_status_code=400)
            with pytest.raises(AuthenticationError):
                DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))

    def test_no_credentials(self):
        client = MagicMock()
        client.scan.side_effect = NoCredentialsError()
        with pytest.raises(AuthenticationError, match="No AWS credentials"):
            DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))

    def test_connection_error(self):
        client = MagicMock()
        client.scan.side_effect = EndpointConnectionError(endpoint_url="http://localhost:8000")
        with pytest.raises(FetchError, match="request failed"):
            DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))

    def test_items_not_a_list(self):
        client = MagicMock()
        client.scan.return_value = {"Items": {"id": {"N": "1"}}}
        with pytest.raises(FetchError, match="not a list"):
            DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))

    def test_non_dict_response(self):
        client = MagicMock()
        client.scan.return_value = None
        with pytest.raises(FetchError, match="Unexpected response type"):
            DynamoPageFetcher(client).fetch_page(QuerySpec(table_name="orders"))


class TestCreateDynamodbClient:
    @patch("dynamo_export.fetcher.boto3.session.Session")
    def test_client_configuration(self, mock_session_cls, sample_config):
        sample_config.aws_endpoint_url = "http://localhost:8000"
        create_dynamodb_client(sample_config)

        mock_session_cls.assert_called_once_with(profile_name=None, region_name="us-east-1")
        kwargs = mock_session_cls.return_value.client.call_args.kwargs
        assert mock_session_cls.return_value.client.call_args.args == ("dynamodb",)
        assert kwargs["endpoint_url"] == "http://localhost:8000"
        assert kwargs["config"].retries == {"max_attempts": 3, "mode": "standard"}
        assert kwargs["config"].connect_timeout == 10
        assert kwargs["config"].read_timeout == 60

    @patch("dynamo_export.fetcher.boto3.session.Session")
    def test_unknown_profile(self, mock_session_cls, sample_config):
        mock_session_cls.side_effect = ProfileNotFound(profile="nope")
        sample_config.aws_profile = "nope"
        with pytest.raises(ConfigurationError, match="profile not found"):
            create_dynamodb_client(sample_config)
