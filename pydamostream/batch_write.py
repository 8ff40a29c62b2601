"""Batch puts and deletes across one or more tables."""

from collections.abc import Mapping
from typing import Any

from pydamostream.batch_operation import BatchOperation, SyncOrAsyncIterable
from pydamostream.write_requests import (
    WriteRequest,
    from_wire,
    to_wire,
    write_request_identifier,
)

MAX_WRITE_BATCH_SIZE = 25


class BatchWrite(BatchOperation[WriteRequest, tuple[str, WriteRequest]]):
    """Write items in batches of at most 25 put or delete requests.

    Accepts ``(table_name, request)`` pairs where the request is a `PutRequest`,
    a `DeleteRequest` or the equivalent wire-shaped dict. Yields each pair once
    DynamoDB has processed it. Requests returned as unprocessed are matched to
    the ones that were sent and resent unchanged after the table's backoff.

    Raises:
        InvalidWriteRequestError: When an input request holds neither or both
            of a put and a delete, before that request is sent.

    """

    batch_size = MAX_WRITE_BATCH_SIZE

    def __init__(
        self,
        dynamodb: Any,
        requests: SyncOrAsyncIterable[tuple[str, WriteRequest | Mapping[str, Any]]],
        **kwargs: Any,
    ) -> None:
        super().__init__(dynamodb, requests, **kwargs)

    def _prepare(self, table_name: str, element: Any) -> WriteRequest:
        return from_wire(element)

    def _build_request(self, batch: list[tuple[str, WriteRequest]]) -> dict[str, Any]:
        request_items: dict[str, list[dict[str, Any]]] = {}
        for table_name, request in batch:
            request_items.setdefault(table_name, []).append(to_wire(request))
        return {"RequestItems": request_items}

    async def _call(self, request: dict[str, Any]) -> Mapping[str, Any]:
        return await self._client.batch_write_item(**request)  # type: ignore[no-any-return]

    def _split_response(
        self,
        batch: list[tuple[str, WriteRequest]],
        response: Mapping[str, Any],
    ) -> tuple[list[tuple[str, WriteRequest]], dict[str, list[WriteRequest]]]:
        in_flight = [
            (table_name, request, write_request_identifier(table_name, request))
            for table_name, request in batch
        ]
        unprocessed: dict[str, list[WriteRequest]] = {}

        for table_name, raw_requests in (response.get("UnprocessedItems") or {}).items():
            retry: list[WriteRequest] = []
            for raw in raw_requests:
                reported = from_wire(raw)
                identifier = write_request_identifier(table_name, reported)
                for index, (sent_table, sent, sent_identifier) in enumerate(in_flight):
                    if sent_table == table_name and sent_identifier == identifier:
                        retry.append(sent)
                        del in_flight[index]
                        break
                else:
                    retry.append(reported)
            unprocessed[table_name] = retry

        processed = [(table_name, request) for table_name, request, _ in in_flight]
        return processed, unprocessed


__all__ = [
    "MAX_WRITE_BATCH_SIZE",
    "BatchWrite",
]
