"""
sessiontab/schemas/response.py

Purpose: Error body shared by every HTTP error
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from sessiontab.core.exceptions import SessionTabError


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable message")
    code: str = Field(..., description="Stable machine-readable error code")
    details: Optional[Any] = None

    @classmethod
    def from_exception(cls, exc: SessionTabError) -> "ErrorResponse":
        return cls(error=exc.message, code=exc.code, details=exc.details)

    def render(self, status_code: int) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=self.model_dump())
