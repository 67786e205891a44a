"""
Unit tests for the response schemas.
"""

from datetime import datetime

import pytest
from pydantic import ValidationError

from crudcore.schemas import (
    CrudMetadata,
    CrudResponse,
    ErrorInfo,
    ErrorResponse,
    PaginationState,
    ResponseMetadata,
)


def test_response_metadata_defaults():
    metadata = ResponseMetadata()
    assert isinstance(metadata.timestamp, datetime)
    assert metadata.timestamp.tzinfo is not None
    assert metadata.version == "1.0"


def test_pagination_state_aliases():
    state = PaginationState(type="offset", total=12, page=2, pages=3, offset=10)
    dumped = state.model_dump(by_alias=True, exclude_none=True)
    assert dumped == {"type": "offset", "total": 12, "page": 2, "pages": 3, "offset": 10}

    cursor = PaginationState(type="cursor", total=5, limit=2, totalPages=3, nextCursor="abc")
    assert cursor.total_pages == 3
    assert cursor.next_cursor == "abc"


def test_pagination_state_rejects_negative_total():
    with pytest.raises(ValidationError):
        PaginationState(type="offset", total=-1)


def test_crud_metadata_is_frozen():
    metadata = CrudMetadata(operation="show", affected_count=1)
    with pytest.raises(ValidationError):
        metadata.affected_count = 2


def test_crud_response_to_dict():
    response = CrudResponse(
        data=[{"id": 1}],
        metadata=CrudMetadata(operation="recover", affected_count=1, was_soft_deleted=[True]),
    )
    data = response.to_dict()
    assert data["data"] == [{"id": 1}]
    assert data["metadata"]["operation"] == "recover"
    assert data["metadata"]["wasSoftDeleted"] == [True]
    assert isinstance(data["metadata"]["timestamp"], str)
    assert "pagination" not in data["metadata"]


def test_error_response_defaults():
    response = ErrorResponse(message="Nope", errors=[ErrorInfo(code="X", message="Nope")])
    assert response.success is False
    assert response.errors[0].field is None
    assert response.metadata.version == "1.0"
