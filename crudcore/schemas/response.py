"""
Response envelopes.

``CrudResponse`` is the uniform ``{data, metadata}`` envelope returned by
every CRUD operation. ``ErrorResponse`` is what the FastAPI exception
handlers render.

Limitations:
- Envelope structure is fixed; customization requires subclassing.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from crudcore.schemas.metadata import CrudMetadata, ResponseMetadata

T = TypeVar("T")


class CrudResponse(BaseModel, Generic[T]):
    """
    Immutable envelope produced by the CRUD service.

    Attributes:
        data: A plain record, or a list of plain records
        metadata: Operation metadata
    """

    model_config = ConfigDict(frozen=True)

    data: T = Field(..., description="Response payload")
    metadata: CrudMetadata

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation with camelCase metadata keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ErrorInfo(BaseModel):
    """
    Detailed error information.

    Attributes:
        code: Error code identifier
        message: Human-readable error message
        field: Optional field name that caused the error
        details: Optional additional error details
    """

    code: str = Field(..., description="Error code identifier")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(
        default=None, description="Field that caused the error"
    )
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error details"
    )


class ErrorResponse(BaseModel):
    """
    Schema for error responses.

    Attributes:
        success: Always false for error responses
        message: Error message
        errors: List of error details (ErrorInfo)
        metadata: Standard response metadata
    """

    success: bool = Field(default=False, description="Always false for error responses")
    message: Optional[str] = Field(default=None, description="Error message")
    errors: List[ErrorInfo] = Field(
        default_factory=list, description="List of error details"
    )
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
