"""Shared engine behind BatchGet and BatchWrite.

A batch operation reads ``(table_name, element)`` pairs from a synchronous or
asynchronous iterable, groups them into requests of at most ``batch_size``
elements and sends them to DynamoDB. Results are yielded as soon as the request
that produced them completes. Elements that DynamoDB reports as unprocessed are
handed to a `ThrottleTracker` and resent once their table's backoff elapses.

Requests touching different tables run concurrently; a table never has more
than one request in flight and is never sent to while it is backing off.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import AsyncGenerator, AsyncIterable, Iterable, Mapping
from typing import Any, ClassVar, Generic, TypeVar, Union

from typing_extensions import Self

from pydamostream.exceptions import IterationInterruptedError
from pydamostream.throttle import DEFAULT_BACKOFF_UNIT, MAX_BACKOFF_FACTOR, ThrottleTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")
Element = TypeVar("Element")
Result = TypeVar("Result")

SyncOrAsyncIterable = Union[Iterable[T], AsyncIterable[T]]


async def iterate(source: SyncOrAsyncIterable[T]) -> AsyncGenerator[T, None]:
    """Iterate over a synchronous or asynchronous iterable asynchronously."""
    if isinstance(source, AsyncIterable):
        async for value in source:
            yield value
    else:
        for value in source:
            yield value


class BatchOperation(ABC, Generic[Element, Result]):
    """Async iterator driving repeated batch calls until every element is processed.

    Subclasses define the request shape, the backend call and how a response
    splits into processed results and unprocessed elements.
    """

    batch_size: ClassVar[int]

    def __init__(
        self,
        client: Any,
        items: SyncOrAsyncIterable[tuple[str, Any]],
        *,
        backoff_unit: float = DEFAULT_BACKOFF_UNIT,
        max_backoff_factor: int = MAX_BACKOFF_FACTOR,
    ) -> None:
        self._client = client
        self._source = iterate(items)
        self._source_done = False
        self._failed = False
        self._closed = False
        self._to_send: deque[tuple[str, Element]] = deque()
        self._results: deque[Result] = deque()
        self._in_flight: dict[asyncio.Task[Mapping[str, Any]], list[tuple[str, Element]]] = {}
        self._busy: set[str] = set()
        self._throttle: ThrottleTracker[Element] = ThrottleTracker(
            backoff_unit=backoff_unit,
            max_backoff_factor=max_backoff_factor,
        )
        self._lock = asyncio.Lock()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> Result:
        async with self._lock:
            while True:
                if self._closed:
                    raise IterationInterruptedError()
                if self._results:
                    return self._results.popleft()
                if self._failed or self._exhausted:
                    raise StopAsyncIteration
                await self._advance()

    async def aclose(self) -> None:
        """Stop the operation and cancel any outstanding requests and backoffs.

        Further iteration raises IterationInterruptedError.
        """
        self._closed = True
        if self._lock.locked():
            # Another task is inside __anext__ and may be awaiting the source.
            # Cancelling its requests and backoffs lets it observe the closed
            # flag and release the lock before the source is closed.
            self._cancel_pending()
        async with self._lock:
            await self._abort()

    @property
    def _exhausted(self) -> bool:
        return (
            self._source_done
            and not self._to_send
            and not self._in_flight
            and self._throttle.gated_count == 0
        )

    def _prepare(self, table_name: str, element: Any) -> Element:
        """Validate or normalize an element read from the source."""
        return element  # type: ignore[no-any-return]

    @abstractmethod
    def _build_request(self, batch: list[tuple[str, Element]]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def _call(self, request: dict[str, Any]) -> Mapping[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def _split_response(
        self,
        batch: list[tuple[str, Element]],
        response: Mapping[str, Any],
    ) -> tuple[list[Result], dict[str, list[Element]]]:
        """Split a response into processed results and unprocessed elements per table."""
        raise NotImplementedError

    async def _advance(self) -> None:
        try:
            await self._read_source()
            self._dispatch()
            await self._wait()
        except BaseException:
            self._failed = True
            await self._abort()
            raise

    def _cancel_pending(self) -> None:
        for task in self._in_flight:
            task.cancel()
        self._throttle.cancel()

    async def _abort(self) -> None:
        self._source_done = True
        self._to_send.clear()
        self._results.clear()
        self._busy.clear()
        self._throttle.cancel()
        await self._source.aclose()

        tasks = list(self._in_flight)
        self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _sendable_count(self) -> int:
        return sum(1 for table_name, _ in self._to_send if table_name not in self._busy)

    def _wants_input(self) -> bool:
        # Buffer at most one batch per busy or gated table on top of the batch
        # being assembled. Elements deferred behind a gated table live in its
        # throttle queue and are not counted, so reading always continues
        # past them to elements for healthy tables.
        capacity = self.batch_size * (len(self._busy) + self._throttle.gated_count + 1)
        return self._sendable_count() < self.batch_size and len(self._to_send) < capacity

    async def _read_source(self) -> None:
        while not self._source_done and not self._closed and self._wants_input():
            try:
                table_name, element = await self._source.__anext__()
            except StopAsyncIteration:
                self._source_done = True
                break

            prepared = self._prepare(table_name, element)
            if self._throttle.is_gated(table_name):
                self._throttle.defer(table_name, prepared)
            else:
                self._to_send.append((table_name, prepared))

    def _dispatch(self) -> None:
        if self._closed:
            return
        while True:
            sendable = self._sendable_count()
            if sendable == 0:
                return
            if sendable < self.batch_size and not self._source_done and self._in_flight:
                return
            self._send(self._take_batch())

    def _take_batch(self) -> list[tuple[str, Element]]:
        batch: list[tuple[str, Element]] = []
        remaining: deque[tuple[str, Element]] = deque()
        for entry in self._to_send:
            if len(batch) < self.batch_size and entry[0] not in self._busy:
                batch.append(entry)
            else:
                remaining.append(entry)
        self._to_send = remaining
        return batch

    def _send(self, batch: list[tuple[str, Element]]) -> None:
        tables = {table_name for table_name, _ in batch}
        self._busy |= tables
        logger.debug("Sending batch of %d elements for tables %s", len(batch), sorted(tables))
        task = asyncio.create_task(self._call(self._build_request(batch)))
        self._in_flight[task] = batch

    async def _wait(self) -> None:
        waitables: list[asyncio.Future[Any]] = [*self._in_flight, *self._throttle.waiters]
        if not waitables:
            return

        done, _ = await asyncio.wait(waitables, return_when=asyncio.FIRST_COMPLETED)
        if self._closed:
            return
        for future in waitables:
            if future not in done:
                continue
            if future in self._in_flight:
                batch = self._in_flight.pop(future)  # type: ignore[call-overload]
                self._busy -= {table_name for table_name, _ in batch}
                self._handle_response(batch, future.result())
            elif self._throttle.owns(future):
                table_name, elements = self._throttle.release(future)
                logger.debug("Resending %d elements for table %s", len(elements), table_name)
                self._to_send.extend((table_name, element) for element in elements)

    def _handle_response(
        self,
        batch: list[tuple[str, Element]],
        response: Mapping[str, Any],
    ) -> None:
        processed, unprocessed = self._split_response(batch, response)

        for table_name, elements in unprocessed.items():
            if elements:
                self._throttle.throttle(table_name, elements)
                self._move_queued_to_throttled(table_name)

        for table_name in {table_name for table_name, _ in batch}:
            if not unprocessed.get(table_name):
                self._throttle.succeeded(table_name)

        self._results.extend(processed)

    def _move_queued_to_throttled(self, table_name: str) -> None:
        remaining: deque[tuple[str, Element]] = deque()
        for entry in self._to_send:
            if entry[0] == table_name:
                self._throttle.defer(table_name, entry[1])
            else:
                remaining.append(entry)
        self._to_send = remaining


__all__ = [
    "BatchOperation",
    "SyncOrAsyncIterable",
    "iterate",
]
