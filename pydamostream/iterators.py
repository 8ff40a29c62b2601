"""Item-level iterators over paginated Scan and Query results.

An item iterator flattens the pages of a paginator and yields one item at a
time, requesting a new page only when the items already received are used up.
Calling `pages()` hands the paginator back for page-level access and retires
the item iterator.
"""

import asyncio
from collections import deque
from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from typing_extensions import Self

from pydamostream.capacity import ConsumedCapacity
from pydamostream.exceptions import IterationInterruptedError, PaginatorDetachedError
from pydamostream.paginators import PageIterator, QueryPaginator, ScanPaginator
from pydamostream.parallel_scan import ParallelScanPaginator, ParallelScanState, ScanState

PaginatorT = TypeVar("PaginatorT", bound=PageIterator)
ItemT = TypeVar("ItemT")


class ItemIterator(Generic[PaginatorT, ItemT]):
    """Async iterator yielding the items of every page of a paginator."""

    def __init__(self, paginator: PaginatorT) -> None:
        self._paginator = paginator
        self._pending: deque[dict[str, Any]] = deque()
        self._iterated_count = 0
        self._detached = False
        self._closed = False
        self._lock = asyncio.Lock()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> ItemT:
        async with self._lock:
            if self._detached:
                raise PaginatorDetachedError()
            if self._closed:
                raise IterationInterruptedError()

            while not self._pending:
                page = await self._paginator.__anext__()
                self._pending.extend(page.get("Items") or [])

            self._iterated_count += 1
            return self._convert(self._pending.popleft())

    def _convert(self, item: dict[str, Any]) -> ItemT:
        return item  # type: ignore[return-value]

    @property
    def count(self) -> int:
        """The number of items that have been iterated over."""
        return self._iterated_count

    @property
    def scanned_count(self) -> int:
        """The number of items evaluated, before any filter was applied."""
        return self._paginator.scanned_count

    @property
    def consumed_capacity(self) -> ConsumedCapacity | None:
        return self._paginator.consumed_capacity

    def pages(self) -> PaginatorT:
        """Detach and return the underlying paginator.

        The paginator yields one page per request made to DynamoDB. Pages may
        hold any number of items, including none. Calling this method disables
        further item iteration.
        """
        self._detached = True
        return self._paginator

    async def aclose(self) -> None:
        """Stop iteration and close the underlying paginator."""
        self._closed = True
        self._pending.clear()
        await self._paginator.aclose()


class ScanIterator(ItemIterator[ScanPaginator, dict[str, Any]]):
    """Iterate over the items of a Scan."""

    def __init__(self, table: Any, request: Mapping[str, Any], limit: int | None = None) -> None:
        super().__init__(ScanPaginator(table, request, limit))


class QueryIterator(ItemIterator[QueryPaginator, dict[str, Any]]):
    """Iterate over the items of a Query."""

    def __init__(self, table: Any, request: Mapping[str, Any], limit: int | None = None) -> None:
        super().__init__(QueryPaginator(table, request, limit))


class ParallelScanIterator(ItemIterator[ParallelScanPaginator, dict[str, Any]]):
    """Iterate over the items of a parallel Scan.

    Example:
        iterator = ParallelScanIterator(table, {"TotalSegments": 4})
        async for item in iterator:
            if should_pause():
                save(iterator.scan_state)
                break

    """

    def __init__(
        self,
        table: Any,
        request: Mapping[str, Any],
        scan_state: Sequence[ScanState] | None = None,
    ) -> None:
        super().__init__(ParallelScanPaginator(table, request, scan_state))

    @property
    def scan_state(self) -> ParallelScanState:
        return self._paginator.scan_state


__all__ = [
    "ItemIterator",
    "ParallelScanIterator",
    "QueryIterator",
    "ScanIterator",
]
