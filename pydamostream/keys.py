"""Type aliases and identity helpers for DynamoDB keys.

Type aliases:
    KeyValue: The types allowed as partition key or sort key values in DynamoDB.
        Includes str, bytes, bytearray, int, and Decimal.

    DynamoDBKey: A dictionary mapping attribute names to key values.
        Example: {"user_id": "123", "timestamp": 1234567890}

    LastEvaluatedKey: The pagination token returned by query() and scan() operations.
        Pass it back as ExclusiveStartKey to continue pagination.

Identity helpers derive stable strings from key attributes so that elements
returned by a batch call can be matched to the elements that were submitted.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, TypeAlias

from boto3.dynamodb.types import Binary
from typing_extensions import TypeAliasType

KeyValue: TypeAlias = str | bytes | bytearray | int | Decimal
DynamoDBKey: TypeAlias = dict[str, KeyValue]
LastEvaluatedKey = TypeAliasType("LastEvaluatedKey", DynamoDBKey)


def _serialize_scalar(value: Any) -> str | None:
    # bool is an int subclass but never a key type
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, Binary):
        return bytes(value.value).hex()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return None


def item_identifier(attributes: Mapping[str, Any], key_properties: Sequence[str]) -> str:
    """Build an identifier from the key properties of an item.

    Args:
        attributes: The marshalled item or key.
        key_properties: The key attribute names of the item's table, in order.

    Returns:
        A string such as ``"id=1:sort=a"``.

    """
    parts = []
    for name in key_properties:
        serialized = _serialize_scalar(attributes.get(name))
        parts.append(f"{name}={serialized if serialized is not None else ''}")
    return ":".join(parts)


def serialize_key_type_attributes(attributes: Mapping[str, Any]) -> str:
    parts = []
    for name in sorted(attributes):
        serialized = _serialize_scalar(attributes[name])
        if serialized is not None:
            parts.append(f"{name}={serialized}")
    return "&".join(parts)


__all__ = [
    "DynamoDBKey",
    "KeyValue",
    "LastEvaluatedKey",
    "item_identifier",
    "serialize_key_type_attributes",
]
