"""Parallel scans over independently paginated segments.

`ParallelScanPaginator` runs one `ScanPaginator` per segment and yields pages
from whichever segment answers first. Its `scan_state` can be captured at any
point and handed to a new paginator to resume the scan later.
"""

import asyncio
import base64
import logging
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer
from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from pydamostream.capacity import ConsumedCapacity, merge_consumed_capacities
from pydamostream.exceptions import ScanStateMismatchError
from pydamostream.paginators import PageIterator, ResultsPage, ScanPaginator

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _encode_key_value(value: Any) -> dict[str, str]:
    attribute = _serializer.serialize(value)
    if "B" in attribute:
        return {"B": base64.b64encode(bytes(attribute["B"])).decode("ascii")}
    return attribute  # type: ignore[return-value]


def _decode_key_value(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    if "B" in value:
        return Binary(base64.b64decode(value["B"]))
    return _deserializer.deserialize(value)


class ScanState(BaseModel):
    """Pagination state of one scan segment.

    A segment that is not initialized has not issued its first request. An
    initialized segment with a `last_evaluated_key` has more pages to fetch;
    one without it is exhausted.

    The state is a plain Pydantic model. `model_dump_json` stores key values as
    typed attributes (``{"N": "5"}``) and `model_validate_json` restores them,
    so a checkpoint can be persisted and loaded in another process.
    """

    model_config = ConfigDict(frozen=True)

    initialized: bool = False
    last_evaluated_key: dict[str, Any] | None = None

    @field_serializer("last_evaluated_key", when_used="json")
    def serialize_last_evaluated_key(
        self,
        key: dict[str, Any] | None,
    ) -> dict[str, dict[str, str]] | None:
        # Key values are written as typed DynamoDB attributes so numbers and
        # binary values keep their type through JSON.
        if key is None:
            return None
        return {name: _encode_key_value(value) for name, value in key.items()}

    @field_validator("last_evaluated_key", mode="before")
    @classmethod
    def validate_last_evaluated_key(cls, key: Any) -> Any:
        if not isinstance(key, dict):
            return key
        return {name: _decode_key_value(value) for name, value in key.items()}

    @property
    def exhausted(self) -> bool:
        return self.initialized and not self.last_evaluated_key


ParallelScanState = list[ScanState]


def null_scan_state(total_segments: int) -> ParallelScanState:
    return [ScanState() for _ in range(total_segments)]


class _PendingPage(NamedTuple):
    segment: int
    paginator: ScanPaginator
    task: "asyncio.Task[ResultsPage | None]"


async def _next_page(paginator: ScanPaginator) -> ResultsPage | None:
    try:
        return await paginator.__anext__()
    except StopAsyncIteration:
        return None


class ParallelScanPaginator(PageIterator):
    """Paginate through a Scan split into ``TotalSegments`` concurrent segments.

    Each segment has at most one request in flight. Page order across
    segments depends on which request completes first; within a segment it is
    sequential.

    Args:
        table: The table resource to scan.
        request: Scan keyword arguments, including ``TotalSegments``.
        scan_state: State captured from another paginator's `scan_state` to
            resume from, one entry per segment.

    Raises:
        ScanStateMismatchError: If `scan_state` does not hold one entry per segment.

    Example:
        paginator = ParallelScanPaginator(table, {"TotalSegments": 4})
        async for page in paginator:
            checkpoint(paginator.scan_state)

    """

    def __init__(
        self,
        table: Any,
        request: Mapping[str, Any],
        scan_state: Sequence[ScanState] | None = None,
    ) -> None:
        super().__init__()
        total_segments: int = request["TotalSegments"]
        if scan_state is None:
            scan_state = null_scan_state(total_segments)
        if len(scan_state) != total_segments:
            raise ScanStateMismatchError(expected=total_segments, received=len(scan_state))

        self._scan_state: ParallelScanState = list(scan_state)
        self._paginators: list[ScanPaginator] = []
        for segment, state in enumerate(self._scan_state):
            segment_request = {**request, "Segment": segment}
            if state.last_evaluated_key:
                segment_request["ExclusiveStartKey"] = state.last_evaluated_key
            self._paginators.append(ScanPaginator(table, segment_request))

        self._pending: list[_PendingPage] = []
        self._armed = False

    @property
    def scan_state(self) -> ParallelScanState:
        """A snapshot of the scan that can be used to resume it elsewhere."""
        return list(self._scan_state)

    @property
    def count(self) -> int:
        return sum(paginator.count for paginator in self._paginators)

    @property
    def scanned_count(self) -> int:
        return sum(paginator.scanned_count for paginator in self._paginators)

    @property
    def consumed_capacity(self) -> ConsumedCapacity | None:
        merged: ConsumedCapacity | None = None
        for paginator in self._paginators:
            merged = merge_consumed_capacities(merged, paginator.consumed_capacity)
        return merged

    async def aclose(self) -> None:
        """Stop the scan, cancelling pending requests and closing every segment."""
        await super().aclose()
        self._armed = True
        await self._cancel_pending()
        await asyncio.gather(*(paginator.aclose() for paginator in self._paginators))

    def _arm(self, segment: int) -> None:
        # New requests go to the back of the list. Results are taken in list
        # order, so a segment that always answers first cannot starve the rest.
        paginator = self._paginators[segment]
        task = asyncio.create_task(_next_page(paginator))
        self._pending.append(_PendingPage(segment, paginator, task))

    def _arm_initial(self) -> None:
        self._armed = True
        for segment, state in enumerate(self._scan_state):
            if not state.exhausted:
                self._arm(segment)
            else:
                logger.debug("Segment %d already exhausted, skipping", segment)

    async def _fetch(self) -> ResultsPage | None:
        if not self._armed:
            self._arm_initial()

        while self._pending:
            done, _ = await asyncio.wait(
                [entry.task for entry in self._pending],
                return_when=asyncio.FIRST_COMPLETED,
            )
            entry = next(entry for entry in self._pending if entry.task in done)
            self._pending.remove(entry)

            try:
                page = entry.task.result()
            except BaseException:
                await self._cancel_pending()
                raise

            self._scan_state[entry.segment] = ScanState(
                initialized=True,
                last_evaluated_key=page.get("LastEvaluatedKey") if page else None,
            )

            if page is not None:
                self._arm(entry.segment)
                return page

            logger.debug("Segment %d exhausted", entry.segment)

        return None

    async def _cancel_pending(self) -> None:
        pending, self._pending = self._pending, []
        for entry in pending:
            entry.task.cancel()
        await asyncio.gather(*(entry.task for entry in pending), return_exceptions=True)


__all__ = [
    "ParallelScanPaginator",
    "ParallelScanState",
    "ScanState",
    "null_scan_state",
]
