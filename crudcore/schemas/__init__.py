"""
Common schemas for crudcore.

This module provides the pydantic models of the response envelopes and
their metadata.
"""

from crudcore.schemas.metadata import (
    BaseMetadata,
    CrudMetadata,
    PaginationState,
    ResponseMetadata,
)
from crudcore.schemas.response import CrudResponse, ErrorInfo, ErrorResponse

__all__ = [
    "BaseMetadata",
    "ResponseMetadata",
    "CrudMetadata",
    "PaginationState",
    "CrudResponse",
    "ErrorInfo",
    "ErrorResponse",
]
