"""Batch operations over models of any number of tables.

The functions in this module accept synchronous or asynchronous iterables of
models, possibly of different classes and tables, and yield models back as the
underlying batch requests complete. Items returned by DynamoDB are matched to
the class they were submitted as through the table's key attributes.

Example:
    async with session.resource("dynamodb") as dynamodb:
        async for model in batch_put(dynamodb, [user, order, other_user]):
            print("written", model)

        keys = [User(user_id="1", name="", email=""), Order(user_id="1", order_id="7")]
        async for model in batch_get(dynamodb, keys, consistent_read=True):
            print("read", model)
"""

import logging
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from pydamostream.async_models import _AsyncPydamoModelBase
from pydamostream.batch_get import BatchGet, TableOptions
from pydamostream.batch_operation import SyncOrAsyncIterable, iterate
from pydamostream.batch_write import BatchWrite
from pydamostream.exceptions import UnknownItemError
from pydamostream.keys import DynamoDBKey, item_identifier
from pydamostream.write_requests import DeleteRequest, PutRequest, WriteRequest

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=_AsyncPydamoModelBase)


class WriteType(str, Enum):
    """The kind of write applied to a model in `batch_write`."""

    PUT = "put"
    DELETE = "delete"


@dataclass
class TableBatchState:
    """What a batch knows about one table.

    Attributes:
        key_properties: The table's key attribute names, partition key first.
        item_schemata: Model class of each submitted item, by item identifier.

    """

    key_properties: list[str]
    item_schemata: dict[str, type[_AsyncPydamoModelBase]] = field(default_factory=dict)


BatchState = dict[str, TableBatchState]


async def _register(state: BatchState, model: _AsyncPydamoModelBase) -> tuple[str, DynamoDBKey]:
    """Record a model in the batch state and return its table name and key."""
    model_cls = type(model)
    await model_cls._load_key_schema()

    table_name = model_cls._table_name()
    table_state = state.get(table_name)
    if table_state is None:
        table_state = TableBatchState(key_properties=model_cls._key_properties())
        state[table_name] = table_state
        logger.debug("Table %s keyed by %s", table_name, table_state.key_properties)

    key = model._marshall_key()
    table_state.item_schemata[item_identifier(key, table_state.key_properties)] = model_cls
    return table_name, key


def _model_class(
    state: BatchState,
    table_name: str,
    attributes: Mapping[str, Any],
) -> type[_AsyncPydamoModelBase]:
    table_state = state.get(table_name)
    identifier = item_identifier(attributes, table_state.key_properties if table_state else [])
    if table_state is None or identifier not in table_state.item_schemata:
        raise UnknownItemError(table_name=table_name, identifier=identifier)
    return table_state.item_schemata[identifier]


def _unmarshall(state: BatchState, table_name: str, request: WriteRequest) -> Any:
    if isinstance(request, DeleteRequest):
        return _model_class(state, table_name, request.key).model_construct(**request.key)
    return _model_class(state, table_name, request.item).model_validate(request.item)


async def batch_get(
    dynamodb: Any,
    items: SyncOrAsyncIterable[ModelType],
    *,
    consistent_read: bool | None = None,
    per_table_options: Mapping[str, TableOptions] | None = None,
    **kwargs: Any,
) -> AsyncGenerator[ModelType, None]:
    """Retrieve the stored version of every model whose key is given.

    Only the key attributes of each input model are read. Models are yielded in
    the order their requests complete, not in input order. Keys that do not
    exist in their table yield nothing.

    Args:
        dynamodb: The aioboto3 DynamoDB service resource.
        items: Models holding the keys to read. May span several tables.
        consistent_read: The default read consistency for all tables.
        per_table_options: Options overriding the defaults for specific tables.
        **kwargs: ``backoff_unit`` and ``max_backoff_factor`` for throttling.

    Raises:
        UnknownItemError: If DynamoDB returns an item matching no submitted key.

    """
    state: BatchState = {}

    async def keys() -> AsyncGenerator[tuple[str, DynamoDBKey], None]:
        async for model in iterate(items):
            yield await _register(state, model)

    batch = BatchGet(
        dynamodb,
        keys(),
        consistent_read=consistent_read,
        per_table_options=per_table_options,
        **kwargs,
    )
    try:
        async for table_name, item in batch:
            yield _model_class(state, table_name, item).model_validate(item)  # type: ignore[misc]
    finally:
        await batch.aclose()


async def batch_write(
    dynamodb: Any,
    operations: SyncOrAsyncIterable[tuple[WriteType, ModelType]],
    **kwargs: Any,
) -> AsyncGenerator[tuple[WriteType, ModelType], None]:
    """Put or delete models across any number of tables.

    Each processed operation is yielded back once DynamoDB confirmed it. Deleted
    models are yielded with their key attributes only.

    Example:
        operations = [(WriteType.PUT, new_user), (WriteType.DELETE, old_order)]
        async for write_type, model in batch_write(dynamodb, operations):
            print(write_type.value, model)

    """
    state: BatchState = {}

    async def requests() -> AsyncGenerator[tuple[str, WriteRequest], None]:
        async for write_type, model in iterate(operations):
            table_name, key = await _register(state, model)
            if write_type is WriteType.DELETE:
                yield table_name, DeleteRequest(key=key)
            else:
                yield table_name, PutRequest(item=model._marshall_item())

    batch = BatchWrite(dynamodb, requests(), **kwargs)
    try:
        async for table_name, request in batch:
            write_type = WriteType.DELETE if isinstance(request, DeleteRequest) else WriteType.PUT
            yield write_type, _unmarshall(state, table_name, request)
    finally:
        await batch.aclose()


async def batch_put(
    dynamodb: Any,
    items: SyncOrAsyncIterable[ModelType],
    **kwargs: Any,
) -> AsyncGenerator[ModelType, None]:
    """Put every model, yielding each one once it has been written."""

    async def operations() -> AsyncGenerator[tuple[WriteType, ModelType], None]:
        async for model in iterate(items):
            yield WriteType.PUT, model

    writes = batch_write(dynamodb, operations(), **kwargs)
    try:
        async for _, model in writes:
            yield model
    finally:
        await writes.aclose()


async def batch_delete(
    dynamodb: Any,
    items: SyncOrAsyncIterable[ModelType],
    **kwargs: Any,
) -> AsyncGenerator[ModelType, None]:
    """Delete every model by key, yielding a key-only model for each deletion."""

    async def operations() -> AsyncGenerator[tuple[WriteType, ModelType], None]:
        async for model in iterate(items):
            yield WriteType.DELETE, model

    writes = batch_write(dynamodb, operations(), **kwargs)
    try:
        async for _, model in writes:
            yield model
    finally:
        await writes.aclose()


__all__ = [
    "BatchState",
    "TableBatchState",
    "WriteType",
    "batch_delete",
    "batch_get",
    "batch_put",
    "batch_write",
]
