"""PydamoStream exceptions.

This module defines the exception hierarchy for the PydamoStream library.
All custom exceptions inherit from PydamoError, allowing users to catch
all library-specific errors with a single except clause.

Exception categories:
- PydamoError: Base exception for all PydamoStream errors
- ValidationError: Local precondition failures raised before any DynamoDB call
- OperationError: Failures while running a DynamoDB operation
- IteratorStateError: Misuse of an iterator that was closed or detached

Note: Pydantic validation errors are intentionally not wrapped and will bubble up
as pydantic.ValidationError. DynamoDB API errors (e.g., ValidationException,
ResourceNotFoundException) are also not wrapped and come directly from
boto3/botocore, aborting the batch or page operation that issued them.
Unprocessed items reported by a batch call are never raised; they are retried.
"""


class PydamoError(Exception):
    """Base exception for all PydamoStream errors.

    Example:
        try:
            async for item in batch_get(dynamodb, keys):
                ...
        except PydamoError as e:
            pass

    """


class ValidationError(PydamoError):
    """Base class for local validation errors."""


class OperationError(PydamoError):
    """Base class for errors raised while running an operation."""


class IteratorStateError(PydamoError):
    """Base class for errors caused by using an iterator in an invalid state."""


class InvalidKeySchemaError(ValidationError):
    """Raised when a DynamoDB key schema is invalid.

    This typically occurs when the table's key schema doesn't contain
    a partition key (HASH key).
    """

    def __init__(self, message: str = "Invalid key schema: no partition key found") -> None:
        super().__init__(message)


class InvalidWriteRequestError(ValidationError):
    """Raised when a write request does not hold exactly one of put or delete.

    Example:
        from_wire({"PutRequest": {"Item": {...}}, "DeleteRequest": {"Key": {...}}})
        Raises InvalidWriteRequestError.

    Attributes:
        request: The offending request.

    """

    def __init__(self, request: object) -> None:
        self.request = request
        super().__init__(
            "Write requests must define exactly one of PutRequest or DeleteRequest, "
            f"got {request!r}"
        )


class ScanStateMismatchError(ValidationError):
    """Raised when a parallel scan is resumed with a state of the wrong length.

    Attributes:
        expected: The number of segments in the scan.
        received: The number of segment states provided.

    """

    def __init__(self, *, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            "Parallel scan state must have a length equal to the number of scan "
            f"segments. Expected {expected} segment states but received {received}."
        )


class ConsumedCapacityMismatchError(ValidationError):
    """Raised when merging consumed capacity reports for two different tables."""

    def __init__(self, *, first: str, second: str) -> None:
        self.first = first
        self.second = second
        super().__init__(
            "Consumed capacity reports may only be merged if they describe the same "
            f"table, got '{first}' and '{second}'"
        )


class MissingSortKeyValueError(OperationError):
    """Raised when a sort key value is required but not provided.

    For models with a composite key (partition + sort), the sort key
    value must be provided for operations that require a complete key.
    """

    def __init__(
        self,
        *,
        operation: str | None = None,
        model_name: str | None = None,
    ) -> None:
        message = "Sort key value must be provided for models with a sort key"
        if model_name and operation:
            message = (
                f"Sort key value must be provided for {model_name} in {operation} operation"
            )
        elif model_name:
            message = f"Sort key value must be provided for {model_name}"
        elif operation:
            message = f"Sort key value must be provided in {operation} operation"
        super().__init__(message)


class IndexNotFoundError(OperationError):
    """Raised when a query names an index that does not exist on the table.

    Attributes:
        index_name: Name of the index that was not found.

    Example:
        await Order.query("pk_value", index_name="nonexistent-index")
        Raises IndexNotFoundError: Index 'nonexistent-index' not found on table

    """

    def __init__(self, *, index_name: str) -> None:
        self.index_name = index_name
        super().__init__(f"Index '{index_name}' not found on table")


class UnknownItemError(OperationError):
    """Raised when a batch response holds an item that matches no submitted model.

    Attributes:
        table_name: The table the item was returned from.
        identifier: The key identifier computed for the returned item.

    """

    def __init__(self, *, table_name: str, identifier: str) -> None:
        self.table_name = table_name
        self.identifier = identifier
        super().__init__(
            f"Item '{identifier}' returned from table '{table_name}' does not match "
            "any submitted model"
        )


class IterationInterruptedError(IteratorStateError):
    """Raised when iterating after aclose() has been called."""

    def __init__(self) -> None:
        super().__init__("Iteration has been manually interrupted and may not be resumed")


class PaginatorDetachedError(IteratorStateError):
    """Raised when iterating items after pages() detached the paginator."""

    def __init__(self) -> None:
        super().__init__("The underlying paginator has been detached from this iterator")


__all__ = [
    "ConsumedCapacityMismatchError",
    "IndexNotFoundError",
    "InvalidKeySchemaError",
    "InvalidWriteRequestError",
    "IterationInterruptedError",
    "IteratorStateError",
    "MissingSortKeyValueError",
    "OperationError",
    "PaginatorDetachedError",
    "PydamoError",
    "ScanStateMismatchError",
    "UnknownItemError",
    "ValidationError",
]
