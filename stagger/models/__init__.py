from stagger.models.base import StaggerBase, utc_now
from stagger.models.scheduling import (
    PriorityTier,
    ScheduledTask,
    TargetRecord,
    TaskStatus,
)

__all__ = [
    "StaggerBase",
    "utc_now",
    "PriorityTier",
    "ScheduledTask",
    "TargetRecord",
    "TaskStatus",
]
