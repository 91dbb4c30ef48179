"""Pydantic models for polling targets and the tasks scheduled for them."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, Field

from stagger.models.base import StaggerBase, utc_now


# ---------- Enums ----------

class PriorityTier(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


# ---------- Targets ----------

class TargetRecord(StaggerBase):
    """One entry of a population snapshot.

    ``id`` is optional at the model level so that malformed snapshot rows can
    still be represented and reported back as skipped by the generator.
    """

    id: str | None = None
    endpoint_reference: str | None = Field(
        default=None,
        validation_alias=AliasChoices("endpoint_reference", "endpointReference", "endpointUrl"),
    )
    priority_tier: PriorityTier = Field(
        default=PriorityTier.medium,
        validation_alias=AliasChoices("priority_tier", "priorityTier", "riskLevel"),
    )


# ---------- Scheduled tasks ----------

class ScheduledTask(StaggerBase):
    """A unit of polling work for one target in one cycle.

    Created fresh every cycle.  ``status`` and ``consecutive_failure_count``
    are owned by the execution layer once the task leaves the generator.
    """

    task_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    target_id: str
    fire_at: datetime
    offset_seconds: int = Field(ge=0)
    status: TaskStatus = TaskStatus.pending
    consecutive_failure_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    endpoint_reference: str | None = None
    priority_tier: PriorityTier = PriorityTier.medium
