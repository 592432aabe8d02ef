# src/planledger/schemas/base.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class APIModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,   # read straight off ORM rows
        extra="ignore",
        populate_by_name=True,
    )


class RequestModel(BaseModel):
    # request bodies reject unknown keys so typos fail loudly
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
