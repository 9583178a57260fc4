"""
Shared pytest fixtures and configuration for PetLodge tests.

This module provides common fixtures used across unit and integration tests,
including mocked boto3 clients, an in-memory paginated source, LocalStack
clients, and sample post data.
"""

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError

from petlodge import CursorPage, PageToken, PostStore, StoreOptions

if TYPE_CHECKING:
    from tests.helpers.localstack import LocalStackHelper


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests against LocalStack")
    config.addinivalue_line("markers", "slow: Slow tests that may take longer")


class FakeSource:
    """
    In-memory cursor-paginated source.

    Tokens are opaque PageTokens wrapping "offset:<n>". Every call is recorded
    as (token, page_size) so tests can count upstream requests.
    """

    def __init__(self, total: int) -> None:
        self.records = [{"n": i} for i in range(total)]
        self.calls: list[tuple[PageToken | None, int]] = []
        self.fail_with: Exception | None = None

    def __call__(self, token: PageToken | None, page_size: int) -> CursorPage[dict[str, int]]:
        self.calls.append((token, page_size))
        if self.fail_with is not None:
            raise self.fail_with
        start = int(token.value.split(":")[1]) if token is not None else 0
        end = start + page_size
        items = self.records[start:end]
        next_token = PageToken(f"offset:{end}") if end < len(self.records) else None
        return CursorPage(items=items, next_token=next_token)


@pytest.fixture
def fake_source():
    """Factory for FakeSource instances: fake_source(total=25)."""
    return FakeSource


@pytest.fixture(scope="session")
def localstack_endpoint() -> str:
    """Get LocalStack endpoint URL from environment or default."""
    return os.getenv("LOCALSTACK_ENDPOINT", "http://localhost:4566")


@pytest.fixture(scope="session")
def localstack_client(localstack_endpoint: str):
    """
    Creates a boto3 client connected to LocalStack.

    This fixture is session-scoped to avoid creating multiple clients.
    """
    return boto3.client(
        "dynamodb",
        endpoint_url=localstack_endpoint,
        region_name="eu-south-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture(scope="session")
def localstack_helper(localstack_endpoint: str) -> "LocalStackHelper":
    from tests.helpers.localstack import LocalStackHelper

    return LocalStackHelper(endpoint_url=localstack_endpoint)


@pytest.fixture
def mock_client():
    """
    Creates a fully mocked boto3 DynamoDB client.

    This fixture provides a mock client for unit tests that don't need
    real DynamoDB interactions.
    """
    client = MagicMock()
    client.scan.return_value = {"Items": []}
    client.query.return_value = {"Items": []}
    return client


@pytest.fixture
def store_options() -> StoreOptions:
    return StoreOptions(posts_table="test_posts", comments_table="test_comments")


@pytest.fixture
def store(mock_client, store_options) -> PostStore:
    """PostStore wired to the mocked client."""
    return PostStore(store_options, client=mock_client)


@pytest.fixture
def sample_post_item() -> dict[str, Any]:
    """A stored post in DynamoDB JSON format."""
    return {
        "id": {"S": "post-1"},
        "title": {"S": "Foster needed for Miso"},
        "content": {"S": "[cat/Berlin] Two weeks in March"},
        "description": {"S": "Two weeks in March"},
        "pet_type": {"S": "cat"},
        "city": {"S": "Berlin"},
        "startDate": {"S": "2024-03-01"},
        "endDate": {"S": "2024-03-14"},
        "keywords": {"L": [{"S": "cat"}, {"S": "indoor"}]},
        "owner": {"S": "mia"},
        "createdAt": {"S": "2024-02-01T10:00:00.000Z"},
        "updatedAt": {"S": "2024-02-01T10:00:00.000Z"},
    }


@pytest.fixture
def sample_new_post() -> dict[str, Any]:
    return {
        "title": "Foster needed for Miso",
        "description": "Two weeks in March",
        "pet_type": "cat",
        "city": "Berlin",
        "startDate": "2024-03-01",
        "endDate": "2024-03-14",
        "keywords": "cat, indoor",
    }


@pytest.fixture
def integration_store(localstack_client, localstack_helper):
    """
    PostStore against LocalStack with fresh, empty tables.
    """
    try:
        localstack_client.list_tables(Limit=1)
    except EndpointConnectionError:
        pytest.skip("LocalStack is not running")

    options = StoreOptions(
        posts_table="it_posts", comments_table="it_comments", region="eu-south-1"
    )
    localstack_helper.create_table(options.posts_table, pk_name="id")
    localstack_helper.create_table_with_gsi(
        options.comments_table,
        pk_name="id",
        gsi_definitions=[
            {
                "index_name": options.comments_by_post_index,
                "pk_name": "postId",
                "pk_type": "S",
                "sk_name": "createdAt",
                "sk_type": "S",
            }
        ],
    )
    localstack_helper.clear_table(options.posts_table, "id")
    localstack_helper.clear_table(options.comments_table, "id")

    yield PostStore(options, client=localstack_client)

    localstack_helper.clear_table(options.posts_table, "id")
    localstack_helper.clear_table(options.comments_table, "id")
