"""Async PydamoStream model base classes and read iterators.

This module provides the primary public model API:

- `AsyncPrimaryKeyModel` for tables with a partition key only
- `AsyncPrimaryKeyAndSortKeyModel` for tables with a partition + sort key

Models are Pydantic `BaseModel` classes. Scans, parallel scans and queries
return async iterators of validated model instances whose `pages()` method
exposes page-level access and pagination metadata.
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar

from typing_extensions import Self

from pydamostream.base import KeySchema, PydamoConfig, _PydamoModelBase
from pydamostream.capacity import ConsumedCapacity
from pydamostream.exceptions import IndexNotFoundError
from pydamostream.iterators import ItemIterator
from pydamostream.keys import KeyValue, LastEvaluatedKey
from pydamostream.paginators import DynamoDBPaginator, PageIterator, QueryPaginator, ScanPaginator
from pydamostream.parallel_scan import ParallelScanPaginator, ParallelScanState, ScanState

ModelType = TypeVar("ModelType", bound="_AsyncPydamoModelBase")
PaginatorT = TypeVar("PaginatorT", bound=PageIterator)


class ModelPaginator(Generic[PaginatorT, ModelType]):
    """Async iterator yielding one list of model instances per DynamoDB request.

    Obtained from a model iterator's `pages()`. Pages may be empty when a
    filter discarded every item a request evaluated.
    """

    def __init__(self, paginator: PaginatorT, model_cls: type[ModelType]) -> None:
        self._paginator = paginator
        self._model_cls = model_cls

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> list[ModelType]:
        page = await self._paginator.__anext__()
        return [self._model_cls.model_validate(item) for item in page.get("Items") or []]

    async def aclose(self) -> None:
        await self._paginator.aclose()

    @property
    def count(self) -> int:
        return self._paginator.count

    @property
    def scanned_count(self) -> int:
        return self._paginator.scanned_count

    @property
    def consumed_capacity(self) -> ConsumedCapacity | None:
        return self._paginator.consumed_capacity

    @property
    def last_evaluated_key(self) -> LastEvaluatedKey | None:
        """The key to resume a sequential scan or query from, if any pages remain."""
        if isinstance(self._paginator, DynamoDBPaginator):
            return self._paginator.last_evaluated_key
        return None

    @property
    def scan_state(self) -> ParallelScanState:
        """The resumable state of a parallel scan."""
        if not isinstance(self._paginator, ParallelScanPaginator):
            raise AttributeError("scan_state is only available on parallel scans")
        return self._paginator.scan_state


class ModelIterator(ItemIterator[PaginatorT, ModelType]):
    """Async iterator yielding validated model instances from a paginator.

    Example:
        async for user in User.scan(filter_expression="age > :age", ...):
            print(user.name)

    """

    def __init__(self, paginator: PaginatorT, model_cls: type[ModelType]) -> None:
        super().__init__(paginator)
        self._model_cls = model_cls

    def _convert(self, item: dict[str, Any]) -> ModelType:
        return self._model_cls.model_validate(item)

    def pages(self) -> ModelPaginator[PaginatorT, ModelType]:  # type: ignore[override]
        """Detach the paginator and return it yielding lists of models.

        Calling this method disables further item iteration.
        """
        return ModelPaginator(super().pages(), self._model_cls)


class ModelParallelScanIterator(ModelIterator[ParallelScanPaginator, ModelType]):
    """Model iterator over a parallel scan, exposing its resumable state."""

    @property
    def scan_state(self) -> ParallelScanState:
        return self._paginator.scan_state


class _AsyncPydamoModelBase(_PydamoModelBase):
    """Internal base class for asynchronous PydamoStream models.

    This class contains shared implementation for both AsyncPrimaryKeyModel and
    AsyncPrimaryKeyAndSortKeyModel. It reads the key schema from the DynamoDB
    table resource with caching and provides scan and parallel scan iterators.

    Do not subclass this directly. Use AsyncPrimaryKeyModel or
    AsyncPrimaryKeyAndSortKeyModel.
    """

    pydamo_config: ClassVar[PydamoConfig]
    _cached_key_schema: ClassVar[list[KeySchema] | None] = None

    @classmethod
    async def _load_key_schema(cls) -> None:
        """Load and cache the key schema from the table."""
        if cls._cached_key_schema is None:
            cls._cached_key_schema = await cls._table().key_schema

    @classmethod
    def _key_schema(cls) -> list[KeySchema]:
        """Get cached key schema.

        The schema must be pre-loaded using _load_key_schema() before calling this method.
        """
        if cls._cached_key_schema is None:
            raise RuntimeError(
                f"{cls.__name__}._key_schema() called before schema was loaded. "
                "Ensure async methods call await cls._load_key_schema() first."
            )
        return cls._cached_key_schema

    @classmethod
    async def _get_index_key_attributes(cls, *, index_name: str) -> tuple[str, str | None]:
        """Get the partition key and sort key attribute names for an index.

        Raises:
            IndexNotFoundError: If the index is not found on the table.

        """
        table = cls._table()

        # Check GSIs
        gsis = await table.global_secondary_indexes or []
        for gsi in gsis:
            if gsi.get("IndexName") == index_name:
                key_schema = gsi.get("KeySchema")
                if key_schema is not None:
                    return cls._parse_key_schema(key_schema=key_schema)

        # Check LSIs
        lsis = await table.local_secondary_indexes or []
        for lsi in lsis:
            if lsi.get("IndexName") == index_name:
                key_schema = lsi.get("KeySchema")
                if key_schema is not None:
                    return cls._parse_key_schema(key_schema=key_schema)

        raise IndexNotFoundError(index_name=index_name)

    @classmethod
    def scan(
        cls,
        *,
        filter_expression: str | None = None,
        projection_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        index_name: str | None = None,
        consistent_read: bool = False,
        page_size: int | None = None,
        limit: int | None = None,
        exclusive_start_key: LastEvaluatedKey | None = None,
        return_consumed_capacity: str | None = None,
    ) -> ModelIterator[ScanPaginator, Self]:
        """Scan the table (or an index), yielding model instances.

        Args:
            filter_expression: Optional filter applied after items are read.
            projection_expression: Optional attributes to retrieve.
            expression_attribute_names: Substitution tokens for attribute names.
            expression_attribute_values: Substitution tokens for values.
            index_name: Optional name of a GSI or LSI to scan.
            consistent_read: Whether to use strongly consistent reads.
            page_size: Maximum number of items evaluated per request.
            limit: Maximum number of items to yield in total.
            exclusive_start_key: Key to resume a previous scan from.
            return_consumed_capacity: NONE, TOTAL or INDEXES.

        Example:
            async for user in User.scan(limit=10):
                print(user.name)

            pages = User.scan(page_size=100).pages()
            async for page in pages:
                print(len(page), pages.last_evaluated_key)

        """
        scan_kwargs = cls._build_read_kwargs(
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            index_name=index_name,
            consistent_read=consistent_read,
            page_size=page_size,
            exclusive_start_key=exclusive_start_key,
            return_consumed_capacity=return_consumed_capacity,
        )
        return ModelIterator(ScanPaginator(cls._table(), scan_kwargs, limit), cls)

    @classmethod
    def parallel_scan(
        cls,
        total_segments: int,
        *,
        filter_expression: str | None = None,
        projection_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        index_name: str | None = None,
        consistent_read: bool = False,
        page_size: int | None = None,
        return_consumed_capacity: str | None = None,
        scan_state: Sequence[ScanState] | None = None,
    ) -> ModelParallelScanIterator[Self]:
        """Scan the table in `total_segments` concurrent segments.

        Pass the `scan_state` of a previous iterator to resume where it left off.

        Raises:
            ScanStateMismatchError: If `scan_state` does not hold one entry per segment.

        Example:
            iterator = User.parallel_scan(4)
            async for user in iterator:
                process(user)
                checkpoint(iterator.scan_state)

        """
        scan_kwargs = cls._build_read_kwargs(
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            index_name=index_name,
            consistent_read=consistent_read,
            page_size=page_size,
            exclusive_start_key=None,
            return_consumed_capacity=return_consumed_capacity,
        )
        scan_kwargs["TotalSegments"] = total_segments
        return ModelParallelScanIterator(
            ParallelScanPaginator(cls._table(), scan_kwargs, scan_state),
            cls,
        )


class AsyncPrimaryKeyModel(_AsyncPydamoModelBase):
    """Base model for DynamoDB tables with partition key only.

    Use this for tables that have only a partition key (no sort key).
    The model reads the key schema directly from the DynamoDB table resource.

    Example:
        import aioboto3
        from pydamostream import AsyncPrimaryKeyModel, PydamoConfig

        class User(AsyncPrimaryKeyModel):
            user_id: str
            name: str
            email: str

        async def main():
            session = aioboto3.Session()
            async with session.resource("dynamodb") as dynamodb:
                table = await dynamodb.Table("users")
                User.pydamo_config = PydamoConfig(table=table)

                async for user in User.scan():
                    print(user.name)

    """


class AsyncPrimaryKeyAndSortKeyModel(_AsyncPydamoModelBase):
    """Base model for DynamoDB tables with partition key and sort key.

    Use this for tables that have both a partition key and a sort key.
    The model reads the key schema directly from the DynamoDB table resource.

    Example:
        class Order(AsyncPrimaryKeyAndSortKeyModel):
            user_id: str
            order_id: str
            status: str
            total: Decimal

        async def main():
            Order.pydamo_config = PydamoConfig(table=table)
            async for order in await Order.query("user-123"):
                print(order.status)

    """

    @classmethod
    async def query(
        cls,
        partition_key_value: KeyValue,
        *,
        sort_key_condition: str | None = None,
        filter_expression: str | None = None,
        projection_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        index_name: str | None = None,
        consistent_read: bool = False,
        page_size: int | None = None,
        limit: int | None = None,
        exclusive_start_key: LastEvaluatedKey | None = None,
        return_consumed_capacity: str | None = None,
    ) -> ModelIterator[QueryPaginator, Self]:
        """Query items by partition key, returning an iterator over every page.

        Args:
            partition_key_value: The partition key value to query. When querying an
                index, this should be the index's partition key value.
            sort_key_condition: Optional key condition on the sort key, such as
                ``"#sk BETWEEN :low AND :high"``. Its placeholders are supplied
                through the expression attribute arguments.
            filter_expression: Optional filter condition applied after the query.
            projection_expression: Optional attributes to retrieve.
            expression_attribute_names: Substitution tokens for attribute names.
            expression_attribute_values: Substitution tokens for values.
            index_name: Optional name of a GSI or LSI to query instead of the table.
            consistent_read: Whether to use strongly consistent reads.
                Note: Consistent reads are not supported on global secondary indexes.
            page_size: Maximum number of items evaluated per request.
            limit: Maximum number of items to yield in total.
            exclusive_start_key: Key to start from for pagination.
            return_consumed_capacity: NONE, TOTAL or INDEXES.

        Raises:
            IndexNotFoundError: If the specified index does not exist on the table.

        Example:
            iterator = await Order.query(
                "user-123",
                sort_key_condition="begins_with(#sk, :prefix)",
                expression_attribute_names={"#sk": "order_id"},
                expression_attribute_values={":prefix": "2024-"},
            )
            async for order in iterator:
                print(order.status)

        """
        await cls._load_key_schema()

        if index_name is not None:
            pk_attr, _ = await cls._get_index_key_attributes(index_name=index_name)
        else:
            pk_attr = cls._partition_key_attribute()

        query_kwargs = cls._build_query_kwargs(
            partition_key_attribute=pk_attr,
            partition_key_value=partition_key_value,
            sort_key_condition=sort_key_condition,
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            index_name=index_name,
            consistent_read=consistent_read,
            page_size=page_size,
            exclusive_start_key=exclusive_start_key,
            return_consumed_capacity=return_consumed_capacity,
        )
        return ModelIterator(QueryPaginator(cls._table(), query_kwargs, limit), cls)

    @classmethod
    async def query_all(
        cls,
        partition_key_value: KeyValue,
        *,
        sort_key_condition: str | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        consistent_read: bool = False,
        index_name: str | None = None,
    ) -> list[Self]:
        """Query all items matching the partition key into a list.

        Example:
            all_orders = await Order.query_all("user-123")

        """
        iterator = await cls.query(
            partition_key_value,
            sort_key_condition=sort_key_condition,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            consistent_read=consistent_read,
            index_name=index_name,
        )
        return [item async for item in iterator]


# Type aliases for convenience
AsyncPKModel = AsyncPrimaryKeyModel
AsyncPKSKModel = AsyncPrimaryKeyAndSortKeyModel


__all__ = [
    "AsyncPKModel",
    "AsyncPKSKModel",
    "AsyncPrimaryKeyAndSortKeyModel",
    "AsyncPrimaryKeyModel",
    "ModelIterator",
    "ModelPaginator",
    "ModelParallelScanIterator",
]
