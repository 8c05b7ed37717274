"""
API models, schemas and payload validation for the book API.
"""

from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

TITLE_MAX_LENGTH = 255
AUTHOR_MAX_LENGTH = 255

# Field names as they appear in error messages
FIELD_LABELS = {
    "title": "Title",
    "author": "Author",
    "publish_year": "publishYear",
}
FIELD_MAX_LENGTHS = {
    "title": TITLE_MAX_LENGTH,
    "author": AUTHOR_MAX_LENGTH,
}

DEFAULT_VALIDATION_MESSAGE = "Validation error"
MALFORMED_BODY_MESSAGE = "Malformed JSON request"


class Role(str, Enum):
    """Roles an authenticated principal may hold."""
    USER = "USER"
    ADMIN = "ADMIN"


class Book(BaseModel):
    """Book record as stored and as sent over the wire."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = Field(None, description="Store-assigned identifier")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Book author")
    publish_year: Optional[str] = Field(None, alias="publishYear", description="Year of publication")

    def to_response(self) -> dict:
        """Serialize with wire field names."""
        return self.model_dump(by_alias=True)


class BookPayload(BaseModel):
    """Validated create/update request body."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, validate_default=True, description="Book title")
    author: Optional[str] = Field(None, validate_default=True, description="Book author")
    publish_year: Optional[str] = Field(None, alias="publishYear", description="Year of publication")

    @field_validator("title", "author", "publish_year", mode="before")
    @classmethod
    def coerce_scalar(cls, v, info: ValidationInfo):
        """Accept JSON scalars as text; objects and arrays are rejected."""
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float)):
            return str(v)
        if isinstance(v, (dict, list)):
            raise PydanticCustomError(
                "book_field_type",
                f"{FIELD_LABELS[info.field_name]} must be a string",
            )
        return v

    @field_validator("title", "author")
    @classmethod
    def validate_text(cls, v, info: ValidationInfo):
        """Ensure title and author are present and within length bounds."""
        label = FIELD_LABELS[info.field_name]
        if v is None:
            raise PydanticCustomError("book_field_null", f"{label} cannot be null")
        max_length = FIELD_MAX_LENGTHS[info.field_name]
        if not 1 <= len(v) <= max_length:
            raise PydanticCustomError(
                "book_field_length",
                f"{label} must be between 1 and {max_length} characters",
            )
        return v

    def to_book(self, book_id: Optional[int] = None) -> Book:
        return Book(
            id=book_id,
            title=self.title,
            author=self.author,
            publish_year=self.publish_year,
        )


class BookValidationError(Exception):
    """Raised when a request body or path parameter fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(join_validation_errors(self.errors))


def join_validation_errors(errors: List[str]) -> str:
    """Join field error messages into a single response body."""
    if not errors:
        return DEFAULT_VALIDATION_MESSAGE
    return ", ".join(errors)


def parse_book_payload(data: Any) -> BookPayload:
    """
    Validate a decoded request body and build a BookPayload.

    Unknown keys, including a caller-supplied id, are ignored.

    Raises:
        BookValidationError: If the body is not an object or any field
            constraint is violated
    """
    if not isinstance(data, dict):
        raise BookValidationError([MALFORMED_BODY_MESSAGE])
    try:
        return BookPayload.model_validate(data)
    except ValidationError as exc:
        raise BookValidationError([error["msg"] for error in exc.errors()]) from exc


def validate_book_payload(data: Any) -> List[str]:
    """
    Check a decoded request body against the book field constraints.

    Args:
        data: Decoded JSON body

    Returns:
        List of error messages, empty when the payload is valid
    """
    try:
        parse_book_payload(data)
    except BookValidationError as exc:
        return exc.errors
    return []


class Principal(BaseModel):
    """Authenticated caller as described by a verified token."""
    subject: str = Field(..., description="Token subject")
    roles: FrozenSet[Role] = Field(default_factory=frozenset, description="Granted roles")

    def has_any_role(self, roles) -> bool:
        return bool(self.roles & set(roles))


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Book store status")
