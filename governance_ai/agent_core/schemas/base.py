"""Pydantic base schema utilities for governance models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base Pydantic model for requests, sessions, decisions and configuration.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Reject unknown fields so malformed project configuration
      fails at validation time instead of at tool-call time.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )
