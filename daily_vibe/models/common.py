"""Response envelopes shared across routers."""

from typing import Any

from pydantic import BaseModel


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str


class ConfigEnvelope(BaseModel):
    success: bool = True
    config: dict[str, Any]


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    error: str
