"""In-memory fakes for the aioboto3 DynamoDB resource and table.

The fakes expose their coroutine methods as `AsyncMock` objects so tests can
inspect every call, or replace a method's side effect to inject failures.
"""

import copy
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock

from pytest import fixture


async def _resolved(value: Any) -> Any:
    return value


class FakeDynamoDB:
    """Stand-in for the batch calls of a DynamoDB service resource.

    Each table is keyed by the attributes given in `key_properties`. Setting
    ``throttled_calls[table] = n`` makes the next ``n`` calls that include the
    table report the second half of its elements (at least one) as unprocessed.
    Unprocessed elements are echoed back as copies, as DynamoDB would.
    """

    def __init__(self, key_properties: dict[str, list[str]]) -> None:
        self.key_properties = key_properties
        self.tables: dict[str, dict[tuple[Any, ...], dict[str, Any]]] = {
            name: {} for name in key_properties
        }
        self.throttled_calls: dict[str, int] = {}
        self.requests: list[dict[str, list[Any]]] = []
        self.batch_get_item = AsyncMock(side_effect=self._batch_get_item)
        self.batch_write_item = AsyncMock(side_effect=self._batch_write_item)

    def put(self, table_name: str, item: dict[str, Any]) -> None:
        self.tables[table_name][self._key(table_name, item)] = dict(item)

    def _key(self, table_name: str, attributes: dict[str, Any]) -> tuple[Any, ...]:
        return tuple(attributes[name] for name in self.key_properties[table_name])

    def _split(self, table_name: str, elements: list[Any]) -> tuple[list[Any], list[Any]]:
        remaining = self.throttled_calls.get(table_name, 0)
        if remaining <= 0:
            return elements, []
        self.throttled_calls[table_name] = remaining - 1
        cut = len(elements) // 2
        return elements[:cut], elements[cut:]

    async def _batch_get_item(self, RequestItems: dict[str, Any]) -> dict[str, Any]:  # noqa: N803
        self.requests.append({name: list(spec["Keys"]) for name, spec in RequestItems.items()})
        responses: dict[str, list[dict[str, Any]]] = {}
        unprocessed: dict[str, Any] = {}

        for table_name, spec in RequestItems.items():
            processed, retry = self._split(table_name, spec["Keys"])
            table = self.tables[table_name]
            responses[table_name] = [
                dict(table[self._key(table_name, key)])
                for key in processed
                if self._key(table_name, key) in table
            ]
            if retry:
                unprocessed[table_name] = {**spec, "Keys": copy.deepcopy(retry)}

        return {"Responses": responses, "UnprocessedKeys": unprocessed}

    async def _batch_write_item(self, RequestItems: dict[str, Any]) -> dict[str, Any]:  # noqa: N803
        self.requests.append({name: list(requests) for name, requests in RequestItems.items()})
        unprocessed: dict[str, list[dict[str, Any]]] = {}

        for table_name, requests in RequestItems.items():
            processed, retry = self._split(table_name, requests)
            for request in processed:
                if "PutRequest" in request:
                    self.put(table_name, request["PutRequest"]["Item"])
                else:
                    key = self._key(table_name, request["DeleteRequest"]["Key"])
                    self.tables[table_name].pop(key, None)
            if retry:
                unprocessed[table_name] = copy.deepcopy(retry)

        return {"UnprocessedItems": unprocessed}


class FakeTable:
    """Stand-in for an aioboto3 Table resource serving Scan and Query.

    Items are split into segments by position. A request without ``Limit``
    returns at most `server_page_size` items, mimicking the 1 MB page cap.
    When `item_filter` is set, it is applied after a page is read so that
    ``Count`` and ``ScannedCount`` differ.
    """

    def __init__(
        self,
        items: list[dict[str, Any]],
        *,
        name: str = "items",
        key_schema: list[dict[str, str]] | None = None,
        server_page_size: int = 2,
        item_filter: Callable[[dict[str, Any]], bool] | None = None,
        global_secondary_indexes: list[dict[str, Any]] | None = None,
    ) -> None:
        self.name = name
        self.items = items
        self.server_page_size = server_page_size
        self.item_filter = item_filter
        self._key_schema = key_schema or [{"AttributeName": "id", "KeyType": "HASH"}]
        self._global_secondary_indexes = global_secondary_indexes
        self.scan = AsyncMock(side_effect=self._scan)
        self.query = AsyncMock(side_effect=self._query)

    @property
    def key_schema(self) -> Awaitable[list[dict[str, str]]]:
        return _resolved(self._key_schema)

    @property
    def global_secondary_indexes(self) -> Awaitable[list[dict[str, Any]] | None]:
        return _resolved(self._global_secondary_indexes)

    @property
    def local_secondary_indexes(self) -> Awaitable[list[dict[str, Any]] | None]:
        return _resolved(None)

    def _page(self, candidates: list[dict[str, Any]], request: dict[str, Any]) -> dict[str, Any]:
        start = 0
        start_key = request.get("ExclusiveStartKey")
        if start_key is not None:
            start = next(i for i, item in enumerate(candidates) if item["id"] == start_key["id"])
            start += 1

        size = request.get("Limit", self.server_page_size)
        evaluated = candidates[start : start + size]
        returned = [item for item in evaluated if self.item_filter is None or self.item_filter(item)]

        page: dict[str, Any] = {
            "Items": [dict(item) for item in returned],
            "Count": len(returned),
            "ScannedCount": len(evaluated),
        }
        if start + size < len(candidates):
            page["LastEvaluatedKey"] = {"id": evaluated[-1]["id"]}
        if request.get("ReturnConsumedCapacity") == "TOTAL":
            page["ConsumedCapacity"] = {"TableName": self.name, "CapacityUnits": 0.5}
        return page

    async def _scan(self, **request: Any) -> dict[str, Any]:
        candidates = self.items
        if "TotalSegments" in request:
            total, segment = request["TotalSegments"], request["Segment"]
            candidates = [item for i, item in enumerate(self.items) if i % total == segment]
        return self._page(candidates, request)

    async def _query(self, **request: Any) -> dict[str, Any]:
        pk_attribute = request["ExpressionAttributeNames"]["#pk"]
        pk_value = request["ExpressionAttributeValues"][":pk"]
        candidates = [item for item in self.items if item.get(pk_attribute) == pk_value]
        return self._page(candidates, request)


@fixture
def fake_dynamodb() -> Callable[..., FakeDynamoDB]:
    return FakeDynamoDB


@fixture
def fake_table() -> Callable[..., FakeTable]:
    return FakeTable
