"""Shared test fixtures for the table export engine."""

import pytest

from dynamo_export.config import ExportConfig
from dynamo_export.fetcher import PageFetcher
from dynamo_export.models import Page, QuerySpec


class FakeFetcher(PageFetcher):
    """Serves a scripted list of pages (or exceptions) and records the tokens it was given."""

    def __init__(self, pages, events=None):
        self.pages = list(pages)
        self.tokens = []
        self.events = events

    @property
    def call_count(self):
        return len(self.tokens)

    def fetch_page(self, spec, token=None):
        self.tokens.append(token)
        if self.events is not None:
            self.events.append("fetch")
        result = self.pages[len(self.tokens) - 1]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def sample_spec():
    return QuerySpec(table_name="orders", limit=2)


@pytest.fixture
def sample_config(tmp_path):
    """Minimal ExportConfig for testing (no config.env, no real AWS)."""
    return ExportConfig(
        table_name="orders",
        page_limit=2,
        output_path=tmp_path / "out" / "orders.csv",
        aws_region="us-east-1",
        _env_file=None,
    )


@pytest.fixture
def two_pages():
    """Second page introduces a column the first page never had."""
    return [
        Page(
            items=[{"id": {"N": "1"}, "name": {"S": "a"}}],
            next_token={"id": {"N": "1"}},
        ),
        Page(
            items=[{"id": {"N": "2"}, "name": {"S": "b"}, "extra": {"S": "x"}}],
            next_token=None,
        ),
    ]


@pytest.fixture
def nested_item():
    """Raw item with every composite type."""
    return {
        " sku ": {"S": "P-1"},
        "qty": {"N": "3"},
        "price": {"N": "9.5"},
        "active": {"BOOL": True},
        "note": {"NULL": True},
        "dims": {"M": {"w": {"N": "2"}, "h": {"N": "1"}}},
        "tags": {"L": [{"S": "red"}, {"N": "7"}]},
        "sizes": {"SS": ["m", "l", "s"]},
    }
