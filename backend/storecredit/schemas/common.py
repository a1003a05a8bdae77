"""Common schemas used across the application."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for wire schemas: snake_case in Python, camelCase in JSON.

    Both spellings are accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope shared by every endpoint.

    Usage:
        response_model=ApiResponse[CreditHistoryOut]

    Returns:
        {
            "success": true,
            "message": "Credit payment recorded successfully",
            "data": {...}
        }
    """
    success: bool = True
    message: str | None = None
    data: T | None = None
