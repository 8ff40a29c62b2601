from collections.abc import AsyncIterator
from typing import Any

import pytest
from types_aiobotocore_dynamodb.service_resource import (
    DynamoDBServiceResource as AsyncDynamoDBServiceResource,
    Table as AsyncTable,
)

from pydamostream.async_models import AsyncPrimaryKeyAndSortKeyModel, AsyncPrimaryKeyModel
from pydamostream.base import PydamoConfig
from pydamostream.exceptions import IndexNotFoundError
from pydamostream.mapper import WriteType, batch_delete, batch_get, batch_put, batch_write

pytestmark = pytest.mark.integration


class PKModel(AsyncPrimaryKeyModel):
    id: str
    name: str
    count: int = 0


class PKSKModel(AsyncPrimaryKeyAndSortKeyModel):
    id: str
    sort: str
    status: str = "open"


@pytest.fixture
def pk_model(pk_table: AsyncTable) -> type[PKModel]:
    PKModel.pydamo_config = PydamoConfig(table=pk_table)
    return PKModel


@pytest.fixture
def pk_sk_model(pk_sk_table: AsyncTable) -> type[PKSKModel]:
    PKSKModel.pydamo_config = PydamoConfig(table=pk_sk_table)
    return PKSKModel


@pytest.mark.asyncio
async def test_batch_put_then_batch_get(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_model: type[PKModel],
) -> None:
    items = [pk_model(id=f"item-{i:03d}", name=f"Item {i}", count=i) for i in range(60)]

    written = [model async for model in batch_put(dynamodb, items)]
    assert len(written) == 60

    keys = [pk_model(id=f"item-{i:03d}", name="") for i in range(60)]
    found = [model async for model in batch_get(dynamodb, keys, consistent_read=True)]

    assert sorted(found, key=lambda model: model.id) == items


@pytest.mark.asyncio
async def test_batch_write_across_tables(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_model: type[PKModel],
    pk_sk_model: type[PKSKModel],
) -> None:
    await _consume(batch_put(dynamodb, [pk_model(id="stale", name="Stale")]))

    operations = [
        (WriteType.PUT, pk_model(id="fresh", name="Fresh")),
        (WriteType.PUT, pk_sk_model(id="user", sort="order-1")),
        (WriteType.DELETE, pk_model(id="stale", name="")),
    ]
    results = [result async for result in batch_write(dynamodb, operations)]
    assert len(results) == 3

    keys = [
        pk_model(id="fresh", name=""),
        pk_model(id="stale", name=""),
        pk_sk_model(id="user", sort="order-1"),
    ]
    found = {type(model): model async for model in batch_get(dynamodb, keys)}

    assert found == {
        PKModel: PKModel(id="fresh", name="Fresh"),
        PKSKModel: PKSKModel(id="user", sort="order-1"),
    }


@pytest.mark.asyncio
async def test_batch_delete(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_sk_table: AsyncTable,
    pk_sk_model: type[PKSKModel],
) -> None:
    orders = [pk_sk_model(id="user", sort=f"order-{i}") for i in range(30)]
    await _consume(batch_put(dynamodb, orders))

    deleted = [model async for model in batch_delete(dynamodb, orders)]

    assert sorted(model.sort for model in deleted) == sorted(order.sort for order in orders)
    response = await pk_sk_table.scan()
    assert response["Items"] == []


@pytest.mark.asyncio
async def test_scan_pages(dynamodb: AsyncDynamoDBServiceResource, pk_model: type[PKModel]) -> None:
    await _consume(batch_put(dynamodb, [pk_model(id=f"item-{i}", name="x") for i in range(25)]))

    pages = pk_model.scan(page_size=10).pages()
    sizes = [len(page) async for page in pages]

    assert sum(sizes) == 25
    assert max(sizes) <= 10
    assert pages.count == 25
    assert pages.last_evaluated_key is None


@pytest.mark.asyncio
async def test_scan_with_filter_and_limit(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_model: type[PKModel],
) -> None:
    items = [pk_model(id=f"item-{i}", name="x", count=i) for i in range(20)]
    await _consume(batch_put(dynamodb, items))

    iterator = pk_model.scan(
        filter_expression="#count >= :min",
        expression_attribute_names={"#count": "count"},
        expression_attribute_values={":min": 10},
        limit=5,
    )
    matches = [model async for model in iterator]

    assert len(matches) == 5
    assert all(model.count >= 10 for model in matches)


@pytest.mark.asyncio
async def test_parallel_scan_resumes(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_model: type[PKModel],
) -> None:
    items = [pk_model(id=f"item-{i:03d}", name="x") for i in range(40)]
    await _consume(batch_put(dynamodb, items))

    pages = pk_model.parallel_scan(4, page_size=3).pages()
    seen = [model.id for model in await pages.__anext__()]
    seen += [model.id for model in await pages.__anext__()]
    state = pages.scan_state
    await pages.aclose()

    seen += [model.id async for model in pk_model.parallel_scan(4, page_size=3, scan_state=state)]

    assert sorted(seen) == [item.id for item in items]


@pytest.mark.asyncio
async def test_query_with_sort_key_condition(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_sk_model: type[PKSKModel],
) -> None:
    orders = [pk_sk_model(id="user", sort=f"2024-{i:02d}") for i in range(1, 13)]
    orders.append(pk_sk_model(id="other", sort="2024-01"))
    await _consume(batch_put(dynamodb, orders))

    iterator = await pk_sk_model.query(
        "user",
        sort_key_condition="#sk BETWEEN :low AND :high",
        expression_attribute_names={"#sk": "sort"},
        expression_attribute_values={":low": "2024-03", ":high": "2024-05"},
    )

    assert [order.sort async for order in iterator] == ["2024-03", "2024-04", "2024-05"]


@pytest.mark.asyncio
async def test_query_gsi(
    dynamodb: AsyncDynamoDBServiceResource,
    pk_sk_model: type[PKSKModel],
) -> None:
    orders = [
        pk_sk_model(id="user", sort="a", status="open"),
        pk_sk_model(id="user", sort="b", status="closed"),
        pk_sk_model(id="other", sort="c", status="open"),
    ]
    await _consume(batch_put(dynamodb, orders))

    open_orders = await pk_sk_model.query_all("open", index_name="status-index")

    assert sorted(order.sort for order in open_orders) == ["a", "c"]

    with pytest.raises(IndexNotFoundError):
        await pk_sk_model.query("open", index_name="missing-index")


async def _consume(models: AsyncIterator[Any]) -> None:
    async for _ in models:
        pass
