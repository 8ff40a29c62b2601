"""Merging of ConsumedCapacity reports returned by DynamoDB."""

from typing import Any

from pydamostream.exceptions import ConsumedCapacityMismatchError

ConsumedCapacity = dict[str, Any]


def _merge_capacities(a: dict[str, Any] | None, b: dict[str, Any] | None) -> dict[str, Any]:
    return {"CapacityUnits": (a or {}).get("CapacityUnits", 0) + (b or {}).get("CapacityUnits", 0)}


def _merge_capacity_maps(
    a: dict[str, dict[str, Any]] | None,
    b: dict[str, dict[str, Any]] | None,
) -> dict[str, dict[str, Any]] | None:
    if a is None and b is None:
        return None
    a = a or {}
    b = b or {}
    return {name: _merge_capacities(a.get(name), b.get(name)) for name in {*a, *b}}


def merge_consumed_capacities(
    a: ConsumedCapacity | None,
    b: ConsumedCapacity | None,
) -> ConsumedCapacity | None:
    """Add two consumed capacity reports together.

    Returns None when both reports are missing.

    Raises:
        ConsumedCapacityMismatchError: If the reports describe different tables.

    """
    if a is None and b is None:
        return None
    a = a or {}
    b = b or {}

    if a.get("TableName") and b.get("TableName") and a["TableName"] != b["TableName"]:
        raise ConsumedCapacityMismatchError(first=a["TableName"], second=b["TableName"])

    merged: ConsumedCapacity = {
        "CapacityUnits": a.get("CapacityUnits", 0) + b.get("CapacityUnits", 0),
        "Table": _merge_capacities(a.get("Table"), b.get("Table")),
    }
    table_name = a.get("TableName") or b.get("TableName")
    if table_name:
        merged["TableName"] = table_name

    local_indexes = _merge_capacity_maps(
        a.get("LocalSecondaryIndexes"), b.get("LocalSecondaryIndexes")
    )
    if local_indexes is not None:
        merged["LocalSecondaryIndexes"] = local_indexes

    global_indexes = _merge_capacity_maps(
        a.get("GlobalSecondaryIndexes"), b.get("GlobalSecondaryIndexes")
    )
    if global_indexes is not None:
        merged["GlobalSecondaryIndexes"] = global_indexes

    return merged


__all__ = [
    "ConsumedCapacity",
    "merge_consumed_capacities",
]
