"""Tests for PydamoStream exceptions."""

import pytest

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


class TestExceptionHierarchy:
    """Test that exception hierarchy is correctly structured."""

    def test_validation_errors_inherit_from_pydamo_error(self) -> None:
        assert issubclass(ValidationError, PydamoError)
        assert issubclass(InvalidKeySchemaError, ValidationError)
        assert issubclass(InvalidWriteRequestError, ValidationError)
        assert issubclass(ScanStateMismatchError, ValidationError)
        assert issubclass(ConsumedCapacityMismatchError, ValidationError)

    def test_operation_errors_inherit_from_pydamo_error(self) -> None:
        assert issubclass(OperationError, PydamoError)
        assert issubclass(MissingSortKeyValueError, OperationError)
        assert issubclass(IndexNotFoundError, OperationError)
        assert issubclass(UnknownItemError, OperationError)

    def test_iterator_state_errors_inherit_from_pydamo_error(self) -> None:
        assert issubclass(IteratorStateError, PydamoError)
        assert issubclass(IterationInterruptedError, IteratorStateError)
        assert issubclass(PaginatorDetachedError, IteratorStateError)

    def test_can_catch_all_with_pydamo_error(self) -> None:
        """Test that all exceptions can be caught with PydamoError."""
        exceptions_to_test = [
            InvalidKeySchemaError(),
            InvalidWriteRequestError({}),
            ScanStateMismatchError(expected=2, received=1),
            ConsumedCapacityMismatchError(first="a", second="b"),
            MissingSortKeyValueError(),
            IndexNotFoundError(index_name="idx"),
            UnknownItemError(table_name="t", identifier="id=1"),
            IterationInterruptedError(),
            PaginatorDetachedError(),
        ]

        for exc in exceptions_to_test:
            with pytest.raises(PydamoError):
                raise exc


class TestErrorMessages:
    """Test error messages and attributes."""

    def test_invalid_key_schema_error(self) -> None:
        assert "no partition key found" in str(InvalidKeySchemaError())
        assert "Custom message" in str(InvalidKeySchemaError("Custom message"))

    def test_invalid_write_request_error(self) -> None:
        request = {"PutRequest": {"Item": {"id": "1"}}, "DeleteRequest": {"Key": {"id": "1"}}}
        exc = InvalidWriteRequestError(request)
        assert "exactly one of PutRequest or DeleteRequest" in str(exc)
        assert exc.request is request

    def test_scan_state_mismatch_error(self) -> None:
        exc = ScanStateMismatchError(expected=4, received=3)
        assert "Expected 4 segment states but received 3" in str(exc)
        assert exc.expected == 4
        assert exc.received == 3

    def test_missing_sort_key_value_error(self) -> None:
        exc = MissingSortKeyValueError(operation="batch_get", model_name="MyModel")
        assert "Sort key value must be provided" in str(exc)
        assert "batch_get" in str(exc)
        assert "MyModel" in str(exc)

    def test_index_not_found_error(self) -> None:
        exc = IndexNotFoundError(index_name="status-index")
        assert "status-index" in str(exc)
        assert exc.index_name == "status-index"

    def test_unknown_item_error(self) -> None:
        exc = UnknownItemError(table_name="users", identifier="id=42")
        assert "users" in str(exc)
        assert "id=42" in str(exc)

    def test_iterator_state_errors(self) -> None:
        assert "manually interrupted" in str(IterationInterruptedError())
        assert "detached" in str(PaginatorDetachedError())
