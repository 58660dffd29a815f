"""
API request schemas.

Example regenerate request bodies:
    {"owner_id": "msg_42"}
    {"all": true}
    {"all": true, "owner_ids": ["msg_1", "msg_2"]}
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class RegenerateRequest(BaseModel):
    """
    Body of POST /v1/admin/regenerate.

    Exactly one of owner_id or all=true is expected. With all=true,
    owner_ids narrows the run to those owners; otherwise every owner in
    the message directory is regenerated.
    """
    owner_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Owner (message id) to regenerate",
    )
    all: bool = Field(
        default=False,
        description="Regenerate every owner",
    )
    owner_ids: List[str] | None = Field(
        default=None,
        description="Subset of owners for a bulk run",
    )
