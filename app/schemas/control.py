"""
Control Schemas
===============

Pydantic models for the inbound command API and the history queries.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.enums import CommandSource
from app.utils.time import coerce_datetime


class RpcCommandRequest(BaseModel):
    """Body of ``POST /api/v1/control/rpc``."""

    project: str = Field(..., min_length=1, max_length=100, description="Project key")
    gh: str = Field(..., min_length=1, max_length=100, description="Greenhouse key")
    method: str = Field(..., min_length=1, max_length=128, description="RPC method name")
    params: Any = Field(default=None, description="RPC parameters, forwarded verbatim")
    timeout: Optional[int] = Field(default=None, ge=0, le=120_000, description="Acknowledgement timeout (ms)")
    source: CommandSource = Field(default=CommandSource.MANUAL, description="Who issued the command")

    @field_validator("method")
    def _strip_method(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("method must not be blank")
        return v


class SetAttributesRequest(BaseModel):
    """Body of ``POST /api/v1/control/attributes``."""

    project: str = Field(..., min_length=1, max_length=100, description="Project key")
    gh: str = Field(..., min_length=1, max_length=100, description="Greenhouse key")
    attributes: dict[str, Union[bool, int, float, str, None]] = Field(..., description="Attribute values to write")
    scope: Literal["SHARED_SCOPE", "SERVER_SCOPE"] = Field(default="SHARED_SCOPE", description="Attribute scope")

    @field_validator("attributes")
    def _not_empty(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("attributes must not be empty")
        return v


class HistoryQuery(BaseModel):
    """Query string of ``GET /api/v1/control/history``."""

    project_key: Optional[str] = None
    gh_key: Optional[str] = None
    source: Optional[CommandSource] = None
    user_id: Optional[int] = None
    control_key: Optional[str] = None
    success: Optional[bool] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @field_validator("start_date", "end_date")
    def _normalize_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        parsed = coerce_datetime(v)
        if parsed is None:
            raise ValueError("must be an ISO-8601 date or datetime")
        return parsed.isoformat()

    def filters(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"limit", "offset"}, exclude_none=True)
        if "source" in data:
            data["source"] = self.source.value
        return data
