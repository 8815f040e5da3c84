from pydantic import BaseModel, Field
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Body of every failed request. `error` is the user-facing message
    (e.g. "Failed to save pantry"), `code` the machine-readable kind.
    """
    error: str
    code: str = Field(..., description="NO_IDENTITY, NOT_FOUND, VALIDATION_ERROR, REMOTE_STORE_ERROR, ...")
    details: Optional[Any] = None
