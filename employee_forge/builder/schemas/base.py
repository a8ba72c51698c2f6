"""Shared pydantic base class for builder schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Strict base model.

    Unknown fields are rejected (``extra="forbid"``) and aliased fields can be
    populated by their Python name as well.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")
