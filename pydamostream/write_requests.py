"""Write requests accepted by BatchWriteItem.

A write request is either a `PutRequest` carrying a full item or a
`DeleteRequest` carrying a key. The two variants are separate types, so a
request holding both or neither cannot be built from them; requests arriving
in the wire shape are validated by `from_wire`.
"""

from collections.abc import Mapping
from typing import Any, NamedTuple

from pydamostream.exceptions import InvalidWriteRequestError
from pydamostream.keys import DynamoDBKey, serialize_key_type_attributes


class PutRequest(NamedTuple):
    """Write a full item, replacing any item with the same key."""

    item: dict[str, Any]


class DeleteRequest(NamedTuple):
    """Delete the item identified by a key."""

    key: DynamoDBKey


WriteRequest = PutRequest | DeleteRequest


def to_wire(request: WriteRequest) -> dict[str, Any]:
    """Convert a write request into the shape expected by batch_write_item."""
    if isinstance(request, DeleteRequest):
        return {"DeleteRequest": {"Key": request.key}}
    return {"PutRequest": {"Item": request.item}}


def from_wire(raw: WriteRequest | Mapping[str, Any]) -> WriteRequest:
    """Parse a write request from its wire shape.

    Args:
        raw: A typed request, or a mapping holding exactly one of
            ``{"PutRequest": {"Item": ...}}`` and ``{"DeleteRequest": {"Key": ...}}``.

    Raises:
        InvalidWriteRequestError: If neither or both variants are populated.

    """
    if isinstance(raw, (PutRequest, DeleteRequest)):
        return raw

    put = (raw.get("PutRequest") or {}).get("Item")
    delete = (raw.get("DeleteRequest") or {}).get("Key")

    if (put is None) == (delete is None):
        raise InvalidWriteRequestError(raw)
    if put is not None:
        return PutRequest(item=dict(put))
    return DeleteRequest(key=dict(delete))


def write_request_identifier(table_name: str, request: WriteRequest) -> str:
    """Identify a write request directed at a table.

    Put requests are identified by all of their scalar attributes and delete
    requests by their key, so an unprocessed request echoed back by DynamoDB
    maps to the request that was sent.
    """
    if isinstance(request, DeleteRequest):
        return f"{table_name}::delete::{serialize_key_type_attributes(request.key)}"
    return f"{table_name}::put::{serialize_key_type_attributes(request.item)}"


__all__ = [
    "DeleteRequest",
    "PutRequest",
    "WriteRequest",
    "from_wire",
    "to_wire",
    "write_request_identifier",
]
