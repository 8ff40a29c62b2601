from collections.abc import AsyncGenerator, Generator
from os import environ

import aioboto3
import pytest
from docker.errors import DockerException
from pytest import fixture
from pytest_asyncio import fixture as async_fixture
from testcontainers.core.container import DockerContainer  # type: ignore[import-untyped]
from testcontainers.core.wait_strategies import (  # type: ignore[import-untyped]
    HttpWaitStrategy,
)
from types_aiobotocore_dynamodb.service_resource import (
    DynamoDBServiceResource as AsyncDynamoDBServiceResource,
    Table as AsyncTable,
)


@fixture(scope="session", autouse=True)
def aws_credentials() -> None:
    environ["AWS_ACCESS_KEY_ID"] = "testing"
    environ["AWS_SECRET_ACCESS_KEY"] = "testing"  # noqa: S105
    environ["AWS_SECURITY_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_SESSION_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_DEFAULT_REGION"] = "us-east-1"


@fixture(scope="session")
def dynamodb_endpoint(aws_credentials: None) -> Generator[str, None, None]:
    """Session-scoped DynamoDB Local container, skipped when Docker is unavailable."""
    try:
        container = DockerContainer(
            "amazon/dynamodb-local:latest",
            ports=[8000],
            _wait_strategy=HttpWaitStrategy(8000).for_status_code(400),
        )
        container.start()
    except DockerException as error:
        pytest.skip(f"Docker is not available: {error}")

    try:
        yield f"http://localhost:{container.get_exposed_port(8000)}"
    finally:
        container.stop()


@async_fixture
async def dynamodb(
    dynamodb_endpoint: str,
) -> AsyncGenerator[AsyncDynamoDBServiceResource, None]:
    """Function-scoped aioboto3 resource reusing the session-scoped endpoint."""
    session = aioboto3.Session()
    async with session.resource("dynamodb", endpoint_url=dynamodb_endpoint) as dynamodb:
        yield dynamodb


@async_fixture
async def pk_table(
    dynamodb: AsyncDynamoDBServiceResource,
) -> AsyncGenerator[AsyncTable, None]:
    table = await dynamodb.create_table(
        TableName="PKTable",
        KeySchema=[
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    await table.wait_until_exists()

    yield table

    await table.delete()


@async_fixture
async def pk_sk_table(
    dynamodb: AsyncDynamoDBServiceResource,
) -> AsyncGenerator[AsyncTable, None]:
    table = await dynamodb.create_table(
        TableName="PKSKTable",
        KeySchema=[
            {"AttributeName": "id", "KeyType": "HASH"},
            {"AttributeName": "sort", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "sort", "AttributeType": "S"},
            {"AttributeName": "status", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "status-index",
                "KeySchema": [
                    {"AttributeName": "status", "KeyType": "HASH"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    await table.wait_until_exists()

    yield table

    await table.delete()
