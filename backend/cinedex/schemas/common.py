"""
Cinedex Backend: Shared Response Schemas
==========================================

What:  Envelopes used by more than one route, and the strict base class
       every request body inherits from.
"""

from typing import Dict, Union

from pydantic import BaseModel, ConfigDict, Field


class StrictInput(BaseModel):
    """
    Base for JSON request bodies.

    extra="forbid":  unknown keys are rejected (400 body contains unknown key)
    strict=True:     no coercion; "1" is not an int and 1 is not a str
    """

    model_config = ConfigDict(extra="forbid", strict=True)


class ErrorResponse(BaseModel):
    """Every non-2xx body: a message, or a field → message map for 422."""

    error: Union[str, Dict[str, str]] = Field(
        description="Error message, or field → message map for validation failures"
    )


class MessageResponse(BaseModel):
    message: str


class SystemInfo(BaseModel):
    environment: str
    version: str


class HealthResponse(BaseModel):
    status: str = Field(description="Always 'available' when the process is serving")
    system_info: SystemInfo
