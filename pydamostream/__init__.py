"""PydamoStream: streaming batch operations and pagination for Pydantic models on DynamoDB."""

from pydamostream.async_models import (
    AsyncPKModel,
    AsyncPKSKModel,
    AsyncPrimaryKeyAndSortKeyModel,
    AsyncPrimaryKeyModel,
    ModelIterator,
    ModelPaginator,
    ModelParallelScanIterator,
)
from pydamostream.base import PydamoConfig
from pydamostream.batch_get import MAX_READ_BATCH_SIZE, BatchGet, BatchGetOptions, TableOptions
from pydamostream.batch_write import MAX_WRITE_BATCH_SIZE, BatchWrite
from pydamostream.capacity import ConsumedCapacity, merge_consumed_capacities
from pydamostream.exceptions import (
    ConsumedCapacityMismatchError,
    IndexNotFoundError,
    InvalidKeySchemaError,
    InvalidWriteRequestError,
    IterationInterruptedError,
    IteratorStateError,
    MissingSortKeyValueError,
    OperationError,
    PaginatorDetachedError,
    PydamoError,
    ScanStateMismatchError,
    UnknownItemError,
    ValidationError,
)
from pydamostream.iterators import ItemIterator, ParallelScanIterator, QueryIterator, ScanIterator
from pydamostream.keys import DynamoDBKey, KeyValue, LastEvaluatedKey
from pydamostream.mapper import (
    BatchState,
    TableBatchState,
    WriteType,
    batch_delete,
    batch_get,
    batch_put,
    batch_write,
)
from pydamostream.paginators import QueryPaginator, ResultsPage, ScanPaginator
from pydamostream.parallel_scan import ParallelScanPaginator, ParallelScanState, ScanState
from pydamostream.write_requests import DeleteRequest, PutRequest, WriteRequest

__all__ = [
    "MAX_READ_BATCH_SIZE",
    "MAX_WRITE_BATCH_SIZE",
    "AsyncPKModel",
    "AsyncPKSKModel",
    "AsyncPrimaryKeyAndSortKeyModel",
    "AsyncPrimaryKeyModel",
    "BatchGet",
    "BatchGetOptions",
    "BatchState",
    "BatchWrite",
    "ConsumedCapacity",
    "ConsumedCapacityMismatchError",
    "DeleteRequest",
    "DynamoDBKey",
    "IndexNotFoundError",
    "InvalidKeySchemaError",
    "InvalidWriteRequestError",
    "ItemIterator",
    "IterationInterruptedError",
    "IteratorStateError",
    "KeyValue",
    "LastEvaluatedKey",
    "MissingSortKeyValueError",
    "ModelIterator",
    "ModelPaginator",
    "ModelParallelScanIterator",
    "OperationError",
    "PaginatorDetachedError",
    "ParallelScanIterator",
    "ParallelScanPaginator",
    "ParallelScanState",
    "PutRequest",
    "PydamoConfig",
    "PydamoError",
    "QueryIterator",
    "QueryPaginator",
    "ResultsPage",
    "ScanIterator",
    "ScanPaginator",
    "ScanState",
    "ScanStateMismatchError",
    "TableBatchState",
    "TableOptions",
    "UnknownItemError",
    "ValidationError",
    "WriteRequest",
    "WriteType",
    "batch_delete",
    "batch_get",
    "batch_put",
    "batch_write",
    "merge_consumed_capacities",
]
