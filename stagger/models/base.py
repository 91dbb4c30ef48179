"""Shared Pydantic base model and utilities."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StaggerBase(BaseModel):
    """Base model with shared config for all Stagger schemas.

    Whitespace is deliberately not stripped: identifiers are hashed exactly
    as they were supplied.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )
