"""Staggered polling schedule engine.

Core modules:
    hasher        — Deterministic identifier → bin offset, distribution analysis
    generator     — TaskGenerator: population snapshot → ScheduledTasks per cycle
    config_loader — Load/validate/hot-reload schedule_config.yaml cadence profiles
    constants     — Default cadence and capacity-planning figures
"""

from stagger.scheduling.generator import (
    CycleStats,
    GeneratorConfig,
    GeneratorConfigError,
    SkippedRecord,
    TaskGenerationResult,
    TaskGenerator,
)
from stagger.scheduling.hasher import (
    DistributionStats,
    InvalidArgumentError,
    analyze_distribution,
    compute_fire_time,
    compute_offset,
    is_distribution_acceptable,
)

__all__ = [
    "TaskGenerator",
    "GeneratorConfig",
    "GeneratorConfigError",
    "CycleStats",
    "SkippedRecord",
    "TaskGenerationResult",
    "DistributionStats",
    "InvalidArgumentError",
    "analyze_distribution",
    "compute_fire_time",
    "compute_offset",
    "is_distribution_acceptable",
]
