"""Common schemas used across multiple endpoints."""

from typing import List, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    detail: str
    code: str
    kind: str
    transfer_id: Optional[str] = None
    expected: Optional[int] = None
    received: Optional[int] = None
    missing: Optional[List[int]] = None
    index: Optional[int] = None
