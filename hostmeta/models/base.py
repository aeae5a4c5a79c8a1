from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Meta(BaseModel):
    """Standard metadata block attached to hostmeta error responses."""

    timestamp: datetime
    request_id: Optional[str] = None

    version: Optional[str] = None
    role: Optional[str] = None


class ErrorInfo(BaseModel):
    """Details about an error condition."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response wrapper.

    All errors are returned in this structure so clients can rely on it.
    """

    error: ErrorInfo
    meta: Meta
