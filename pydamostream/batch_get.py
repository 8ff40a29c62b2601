"""Batch reads across one or more tables."""

from collections.abc import Mapping
from typing import Any

from typing_extensions import TypedDict

from pydamostream.batch_operation import BatchOperation, SyncOrAsyncIterable
from pydamostream.keys import DynamoDBKey

MAX_READ_BATCH_SIZE = 100


class TableOptions(TypedDict, total=False):
    """Options applied to every read directed at one table.

    Attributes:
        consistent_read: The read consistency for this table.
        projection_expression: Attributes to retrieve from this table.
        expression_attribute_names: Substitution tokens used by the projection.

    """

    consistent_read: bool
    projection_expression: str
    expression_attribute_names: dict[str, str]


class BatchGetOptions(TypedDict, total=False):
    """Options for a batch get.

    Attributes:
        consistent_read: The default read consistency for all tables.
        per_table_options: Options overriding the defaults for specific tables.

    """

    consistent_read: bool
    per_table_options: dict[str, TableOptions]


class BatchGet(BatchOperation[DynamoDBKey, tuple[str, dict[str, Any]]]):
    """Retrieve items in batches of at most 100 keys.

    Yields ``(table_name, item)`` tuples in the order their requests complete.
    Keys returned as unprocessed are retried with per-table backoff until read.

    Example:
        batch = BatchGet(dynamodb, [("users", {"id": "1"}), ("orders", {"id": "9"})])
        async for table_name, item in batch:
            print(table_name, item)

    """

    batch_size = MAX_READ_BATCH_SIZE

    def __init__(
        self,
        dynamodb: Any,
        keys: SyncOrAsyncIterable[tuple[str, DynamoDBKey]],
        *,
        consistent_read: bool | None = None,
        per_table_options: Mapping[str, TableOptions] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(dynamodb, keys, **kwargs)
        self._consistent_read = consistent_read
        self._per_table_options = dict(per_table_options or {})

    def _table_request(self, table_name: str) -> dict[str, Any]:
        options = self._per_table_options.get(table_name, TableOptions())
        table_request: dict[str, Any] = {"Keys": []}

        consistent_read = options.get("consistent_read", self._consistent_read)
        if consistent_read is not None:
            table_request["ConsistentRead"] = consistent_read
        if "projection_expression" in options:
            table_request["ProjectionExpression"] = options["projection_expression"]
        if "expression_attribute_names" in options:
            table_request["ExpressionAttributeNames"] = options["expression_attribute_names"]

        return table_request

    def _build_request(self, batch: list[tuple[str, DynamoDBKey]]) -> dict[str, Any]:
        request_items: dict[str, dict[str, Any]] = {}
        for table_name, key in batch:
            if table_name not in request_items:
                request_items[table_name] = self._table_request(table_name)
            request_items[table_name]["Keys"].append(key)
        return {"RequestItems": request_items}

    async def _call(self, request: dict[str, Any]) -> Mapping[str, Any]:
        return await self._client.batch_get_item(**request)  # type: ignore[no-any-return]

    def _split_response(
        self,
        batch: list[tuple[str, DynamoDBKey]],
        response: Mapping[str, Any],
    ) -> tuple[list[tuple[str, dict[str, Any]]], dict[str, list[DynamoDBKey]]]:
        processed = [
            (table_name, item)
            for table_name, items in (response.get("Responses") or {}).items()
            for item in items
        ]
        unprocessed = {
            table_name: list(table_request.get("Keys") or [])
            for table_name, table_request in (response.get("UnprocessedKeys") or {}).items()
        }
        return processed, unprocessed


__all__ = [
    "MAX_READ_BATCH_SIZE",
    "BatchGet",
    "BatchGetOptions",
    "TableOptions",
]
