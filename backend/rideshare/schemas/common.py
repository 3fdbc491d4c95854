"""
Response envelope shared by all endpoints.
"""
from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Standard response: {success, message, data}."""
    success: bool = True
    message: str = "Success"
    data: Optional[T] = None


class Pagination(BaseModel):
    """Offset pagination block."""
    page: int
    limit: int
    total: int
    pages: int

