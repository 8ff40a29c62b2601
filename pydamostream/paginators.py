"""Sequential paginators over Scan and Query.

A paginator wraps one logical scan or query and yields the raw response of
each request as a page. It follows ``LastEvaluatedKey`` until DynamoDB stops
returning one, keeps cumulative counters, and can cap the total number of
items returned across all pages.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from typing_extensions import Self, TypedDict

from pydamostream.capacity import ConsumedCapacity, merge_consumed_capacities
from pydamostream.exceptions import IterationInterruptedError
from pydamostream.keys import LastEvaluatedKey


class ResultsPage(TypedDict, total=False):
    """A single Scan or Query response."""

    Items: list[dict[str, Any]]
    Count: int
    ScannedCount: int
    LastEvaluatedKey: LastEvaluatedKey
    ConsumedCapacity: ConsumedCapacity


class PageIterator(ABC):
    """Async iterator of result pages that cannot be resumed once closed."""

    def __init__(self) -> None:
        self._closed = False
        self._lock = asyncio.Lock()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> ResultsPage:
        async with self._lock:
            if self._closed:
                raise IterationInterruptedError()
            page = await self._fetch()
            if page is None:
                raise StopAsyncIteration
            return page

    async def aclose(self) -> None:
        """Prevent any further use of this iterator."""
        self._closed = True

    @abstractmethod
    async def _fetch(self) -> ResultsPage | None:
        """Return the next page, or None once exhausted."""
        raise NotImplementedError

    @property
    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def scanned_count(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def consumed_capacity(self) -> ConsumedCapacity | None:
        raise NotImplementedError


class DynamoDBPaginator(PageIterator):
    """Base paginator following ``LastEvaluatedKey`` across requests.

    Args:
        request: The keyword arguments of the first request.
        limit: Maximum number of items to return across all pages.

    """

    def __init__(self, request: Mapping[str, Any], limit: int | None = None) -> None:
        super().__init__()
        self._limit = limit
        self._count = 0
        self._scanned_count = 0
        self._consumed_capacity: ConsumedCapacity | None = None
        self._last_key: LastEvaluatedKey | None = None
        self._next_request: dict[str, Any] | None = dict(request)

    @property
    def count(self) -> int:
        """The number of items returned so far."""
        return self._count

    @property
    def scanned_count(self) -> int:
        """The number of items evaluated so far, before any filter was applied."""
        return self._scanned_count

    @property
    def consumed_capacity(self) -> ConsumedCapacity | None:
        """Capacity consumed so far, if ReturnConsumedCapacity was requested."""
        return self._consumed_capacity

    @property
    def last_evaluated_key(self) -> LastEvaluatedKey | None:
        """The LastEvaluatedKey of the latest page, or None once exhausted."""
        return self._last_key

    def _next_page_size(self, requested: int | None) -> int | None:
        if self._limit is None:
            return requested
        remaining = self._limit - self._count
        return remaining if requested is None else min(requested, remaining)

    @abstractmethod
    async def _send(self, request: dict[str, Any]) -> ResultsPage:
        raise NotImplementedError

    async def _fetch(self) -> ResultsPage | None:
        if self._next_request is None:
            return None
        if self._limit is not None and self._count >= self._limit:
            return None

        request = dict(self._next_request)
        page_size = self._next_page_size(request.get("Limit"))
        if page_size is not None:
            request["Limit"] = page_size

        page = await self._send(request)

        last_key = page.get("LastEvaluatedKey")
        if last_key:
            self._next_request = {**self._next_request, "ExclusiveStartKey": last_key}
        else:
            self._next_request = None

        self._last_key = last_key or None
        self._count += len(page.get("Items") or [])
        self._scanned_count += page.get("ScannedCount") or 0
        self._consumed_capacity = merge_consumed_capacities(
            self._consumed_capacity,
            page.get("ConsumedCapacity"),
        )
        return page


class ScanPaginator(DynamoDBPaginator):
    """Paginate through the results of a Scan on a table resource.

    Example:
        async for page in ScanPaginator(table, {"FilterExpression": "..."}):
            print(len(page["Items"]))

    """

    def __init__(self, table: Any, request: Mapping[str, Any], limit: int | None = None) -> None:
        super().__init__(request, limit)
        self._table = table

    async def _send(self, request: dict[str, Any]) -> ResultsPage:
        return await self._table.scan(**request)  # type: ignore[no-any-return]


class QueryPaginator(DynamoDBPaginator):
    """Paginate through the results of a Query on a table resource."""

    def __init__(self, table: Any, request: Mapping[str, Any], limit: int | None = None) -> None:
        super().__init__(request, limit)
        self._table = table

    async def _send(self, request: dict[str, Any]) -> ResultsPage:
        return await self._table.query(**request)  # type: ignore[no-any-return]


__all__ = [
    "DynamoDBPaginator",
    "PageIterator",
    "QueryPaginator",
    "ResultsPage",
    "ScanPaginator",
]
