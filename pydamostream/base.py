"""Shared base functionality for PydamoStream models.

This module provides the logic every model needs before any DynamoDB call is
made: parsing the table's key schema, reading key values off an instance,
marshalling items and keys, and assembling Scan and Query keyword arguments.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python
from typing_extensions import TypedDict

from pydamostream.exceptions import InvalidKeySchemaError, MissingSortKeyValueError
from pydamostream.keys import DynamoDBKey, KeyValue, LastEvaluatedKey

if TYPE_CHECKING:
    from types_aiobotocore_dynamodb.service_resource import Table as AsyncTable
    from types_aiobotocore_dynamodb.type_defs import KeySchemaElementTypeDef as KeySchema
else:
    AsyncTable = Any
    KeySchema = Any


class PydamoConfig(TypedDict):
    """Configuration required on each model class.

    Attributes:
        table: The aioboto3 DynamoDB Table resource associated with the model.

    """

    table: AsyncTable


class _PydamoModelBase(BaseModel):
    """Internal base class containing the key and marshalling logic of models.

    This base class provides common functionality for:
    - Parsing DynamoDB key schemas
    - Accessing partition and sort key attributes
    - Building DynamoDB key dictionaries
    - Building kwargs for DynamoDB Scan and Query operations

    Subclasses must provide a _key_schema() class method returning the table's
    key schema and a pydamo_config class variable.

    Do not subclass this directly. Use AsyncPrimaryKeyModel or
    AsyncPrimaryKeyAndSortKeyModel instead.
    """

    pydamo_config: ClassVar[PydamoConfig]

    @classmethod
    def _table(cls) -> AsyncTable:
        return cls.pydamo_config["table"]

    @classmethod
    def _table_name(cls) -> str:
        return cls._table().name  # type: ignore[no-any-return]

    @classmethod
    def _key_schema(cls) -> list[KeySchema]:
        raise NotImplementedError

    @staticmethod
    def _parse_key_schema(*, key_schema: Sequence[KeySchema]) -> tuple[str, str | None]:
        """Parse a DynamoDB key schema into partition and sort key attributes.

        Raises:
            InvalidKeySchemaError: If no partition key is present.

        """
        partition_key_attribute: str | None = None
        sort_key_attribute: str | None = None

        for key_element in key_schema:
            if key_element["KeyType"] == "HASH":
                partition_key_attribute = key_element["AttributeName"]
            elif key_element["KeyType"] == "RANGE":
                sort_key_attribute = key_element["AttributeName"]

        if partition_key_attribute is None:
            raise InvalidKeySchemaError()

        return partition_key_attribute, sort_key_attribute

    @classmethod
    def _partition_key_attribute(cls) -> str:
        partition_key_attribute, _ = cls._parse_key_schema(key_schema=cls._key_schema())
        return partition_key_attribute

    @classmethod
    def _sort_key_attribute(cls) -> str | None:
        _, sort_key_attribute = cls._parse_key_schema(key_schema=cls._key_schema())
        return sort_key_attribute

    @classmethod
    def _key_properties(cls) -> list[str]:
        """The table's key attribute names, partition key first."""
        partition_key_attribute, sort_key_attribute = cls._parse_key_schema(
            key_schema=cls._key_schema()
        )
        if sort_key_attribute is None:
            return [partition_key_attribute]
        return [partition_key_attribute, sort_key_attribute]

    @property
    def _partition_key_value(self) -> KeyValue:
        return getattr(self, self._partition_key_attribute())  # type: ignore[no-any-return]

    @property
    def _sort_key_value(self) -> KeyValue | None:
        sort_key_attribute = self._sort_key_attribute()
        return getattr(self, sort_key_attribute) if sort_key_attribute else None

    @classmethod
    def _build_dynamodb_key(
        cls,
        *,
        partition_key_value: KeyValue,
        sort_key_value: KeyValue | None = None,
    ) -> DynamoDBKey:
        """Build a DynamoDB key from key values.

        Raises:
            MissingSortKeyValueError: If the table has a sort key but no value provided.

        """
        partition_key_attribute = cls._partition_key_attribute()
        key: DynamoDBKey = {partition_key_attribute: to_jsonable_python(partition_key_value)}

        sort_key_attribute = cls._sort_key_attribute()
        if sort_key_attribute is not None:
            if sort_key_value is None:
                raise MissingSortKeyValueError(model_name=cls.__name__)
            key[sort_key_attribute] = to_jsonable_python(sort_key_value)

        return key

    def _marshall_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def _marshall_key(self) -> DynamoDBKey:
        return self._build_dynamodb_key(
            partition_key_value=self._partition_key_value,
            sort_key_value=self._sort_key_value,
        )

    @staticmethod
    def _build_read_kwargs(
        *,
        filter_expression: str | None,
        projection_expression: str | None,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any] | None,
        index_name: str | None,
        consistent_read: bool,
        page_size: int | None,
        exclusive_start_key: LastEvaluatedKey | None,
        return_consumed_capacity: str | None,
    ) -> dict[str, Any]:
        """Build the kwargs shared by scan and query operations.

        Args:
            filter_expression: Optional filter applied after items are read.
            projection_expression: Optional attributes to retrieve.
            expression_attribute_names: Substitution tokens for attribute names.
            expression_attribute_values: Substitution tokens for values.
            index_name: Optional index name.
            consistent_read: Whether to use consistent reads.
            page_size: Maximum number of items evaluated per request.
            exclusive_start_key: Pagination token to resume from.
            return_consumed_capacity: NONE, TOTAL or INDEXES.

        """
        read_kwargs: dict[str, Any] = {"ConsistentRead": consistent_read}

        if index_name is not None:
            read_kwargs["IndexName"] = index_name
        if filter_expression is not None:
            read_kwargs["FilterExpression"] = filter_expression
        if projection_expression is not None:
            read_kwargs["ProjectionExpression"] = projection_expression
        if expression_attribute_names:
            read_kwargs["ExpressionAttributeNames"] = dict(expression_attribute_names)
        if expression_attribute_values:
            read_kwargs["ExpressionAttributeValues"] = dict(expression_attribute_values)
        if page_size is not None:
            read_kwargs["Limit"] = page_size
        if exclusive_start_key is not None:
            read_kwargs["ExclusiveStartKey"] = exclusive_start_key
        if return_consumed_capacity is not None:
            read_kwargs["ReturnConsumedCapacity"] = return_consumed_capacity

        return read_kwargs

    @classmethod
    def _build_query_kwargs(
        cls,
        *,
        partition_key_attribute: str,
        partition_key_value: KeyValue,
        sort_key_condition: str | None,
        **read_options: Any,
    ) -> dict[str, Any]:
        """Build kwargs dictionary for a query operation.

        The partition key equality uses the ``#pk`` and ``:pk`` placeholders.
        `sort_key_condition` is appended with AND and may use its own
        placeholders, supplied through the expression attribute options.
        """
        query_kwargs = cls._build_read_kwargs(**read_options)

        key_condition = "#pk = :pk"
        if sort_key_condition is not None:
            key_condition = f"{key_condition} AND {sort_key_condition}"

        query_kwargs["KeyConditionExpression"] = key_condition
        query_kwargs["ExpressionAttributeNames"] = {
            **query_kwargs.get("ExpressionAttributeNames", {}),
            "#pk": partition_key_attribute,
        }
        query_kwargs["ExpressionAttributeValues"] = {
            **query_kwargs.get("ExpressionAttributeValues", {}),
            ":pk": to_jsonable_python(partition_key_value),
        }

        return query_kwargs


__all__ = [
    "AsyncTable",
    "PydamoConfig",
    "_PydamoModelBase",
]
