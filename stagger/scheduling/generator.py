"""Staggered task generation for recurring polling targets.

Turns a population snapshot into one ScheduledTask per target for a cycle.
Each task fires at ``cycle_start + offset`` where the offset comes from the
hasher, so:

1. The same target always gets the same offset (deterministic)
2. Tasks spread evenly across the cycle (no thundering herd)
3. Consecutive aligned cycles are exactly ``interval_seconds`` apart per target
4. New targets distribute themselves without moving existing ones

Usage::

    generator = TaskGenerator(interval_seconds=300)
    result = generator.generate_tasks_for_targets(
        [{"id": "patient-1"}, {"id": "patient-2"}],
        cycle_start=datetime(2026, 1, 20, 10, 0, tzinfo=timezone.utc),
    )
    queue.publish(result.tasks)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from stagger.models.base import utc_now
from stagger.models.scheduling import ScheduledTask, TargetRecord, TaskStatus
from stagger.scheduling.constants import (
    DEFAULT_BIN_COUNT,
    DEFAULT_INTERVAL_SECONDS,
    MAX_DISTRIBUTION_CV,
)
from stagger.scheduling.hasher import (
    DistributionStats,
    InvalidArgumentError,
    analyze_distribution,
    compute_offset,
    summarize_bins,
)

if TYPE_CHECKING:
    from stagger.config import Settings
    from stagger.scheduling.config_loader import CadenceProfile

logger = logging.getLogger("stagger.scheduling.generator")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class GeneratorConfigError(ValueError):
    """Raised when a TaskGenerator is constructed with an invalid cadence."""


@dataclass(frozen=True)
class GeneratorConfig:
    """Cadence a generator was built with."""

    interval_seconds: int
    bin_count: int
    max_cv: float = MAX_DISTRIBUTION_CV


@dataclass
class SkippedRecord:
    """A snapshot entry that did not produce a task.

    Attributes:
        index:     Position of the record in the input batch.
        target_id: The ID as supplied (may be None or blank).
        reason:    Why the record was skipped.
    """

    index: int
    target_id: Any
    reason: str


@dataclass
class RecordOutcome:
    """Per-record result of batch generation: a task or a skip reason."""

    index: int
    target_id: Any
    task: ScheduledTask | None = None
    skip_reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.task is not None


@dataclass
class CycleStats:
    """Aggregate statistics for one generated cycle.

    Attributes:
        cycle_start:        Start of the cycle the tasks belong to.
        total_targets:      Number of input records.
        tasks_generated:    Number of tasks produced.
        bin_distribution:   bin index → task count, every bin present.
        generation_time_ms: Wall-clock duration of the batch call.
    """

    cycle_start: datetime
    total_targets: int
    tasks_generated: int
    bin_distribution: dict[int, int] = field(default_factory=dict)
    generation_time_ms: float = 0.0

    @property
    def skipped_count(self) -> int:
        return self.total_targets - self.tasks_generated


@dataclass
class TaskGenerationResult:
    """Tasks for one cycle plus statistics and the records that were skipped."""

    tasks: list[ScheduledTask]
    stats: CycleStats
    skipped: list[SkippedRecord] = field(default_factory=list)


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _raw_id(record: Any) -> Any:
    if isinstance(record, Mapping):
        return record.get("id")
    return getattr(record, "id", None)


class TaskGenerator:
    """Generate staggered polling tasks for a population of targets.

    The generator holds only its cadence; every call is a pure function of
    that cadence, the input records, and the cycle start.
    """

    def __init__(
        self,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        bin_count: int = DEFAULT_BIN_COUNT,
        max_cv: float = MAX_DISTRIBUTION_CV,
    ) -> None:
        """Validate the cadence.

        Args:
            interval_seconds: Length of one polling cycle.
            bin_count:        Number of one-second bins tasks are spread over.
            max_cv:           Default coefficient-of-variation threshold for
                              ``is_distribution_acceptable``.

        Raises:
            GeneratorConfigError: If either count is not a positive integer,
                                  bin_count exceeds interval_seconds, or max_cv
                                  is not a positive number.
        """
        if not _is_count(interval_seconds) or interval_seconds <= 0:
            raise GeneratorConfigError(
                f"Interval seconds must be a positive integer, got {interval_seconds!r}"
            )
        if not _is_count(bin_count) or bin_count <= 0:
            raise GeneratorConfigError(
                f"Bin count must be a positive integer, got {bin_count!r}"
            )
        if bin_count > interval_seconds:
            raise GeneratorConfigError(
                f"Bin count ({bin_count}) cannot exceed interval seconds ({interval_seconds})"
            )
        if isinstance(max_cv, bool) or not isinstance(max_cv, (int, float)) or max_cv <= 0:
            raise GeneratorConfigError(
                f"Max coefficient of variation must be a positive number, got {max_cv!r}"
            )

        self._config = GeneratorConfig(
            interval_seconds=interval_seconds, bin_count=bin_count, max_cv=float(max_cv)
        )
        logger.debug(
            "TaskGenerator configured: interval=%ds bins=%d",
            interval_seconds,
            bin_count,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TaskGenerator:
        """Build a generator from ``STAGGER_*`` environment settings."""
        if settings is None:
            from stagger.config import get_settings

            settings = get_settings()
        return cls(
            interval_seconds=settings.interval_seconds,
            bin_count=settings.bin_count,
            max_cv=settings.max_distribution_cv,
        )

    @classmethod
    def from_profile(cls, profile: CadenceProfile) -> TaskGenerator:
        """Build a generator from a named cadence profile."""
        return cls(
            interval_seconds=profile.interval_seconds,
            bin_count=profile.bin_count,
            max_cv=profile.max_cv,
        )

    @property
    def interval_seconds(self) -> int:
        return self._config.interval_seconds

    @property
    def bin_count(self) -> int:
        return self._config.bin_count

    def get_config(self) -> GeneratorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Single target
    # ------------------------------------------------------------------

    def generate_task_for_target(
        self,
        record: TargetRecord | Mapping[str, Any],
        cycle_start: datetime,
    ) -> ScheduledTask:
        """Generate one task for one target.

        Args:
            record:      TargetRecord, or a mapping with the same keys.
            cycle_start: Start of the cycle.

        Returns:
            A new pending ScheduledTask.

        Raises:
            InvalidArgumentError: If the record has no usable ID.
        """
        target = self._coerce_record(record)
        if not target.id or not target.id.strip():
            raise InvalidArgumentError("Target ID is required")

        offset = compute_offset(target.id, self.bin_count)
        return ScheduledTask(
            target_id=target.id,
            fire_at=cycle_start + timedelta(seconds=offset),
            offset_seconds=offset,
            status=TaskStatus.pending,
            consecutive_failure_count=0,
            created_at=utc_now(),
            endpoint_reference=target.endpoint_reference,
            priority_tier=target.priority_tier,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def generate_outcomes(
        self,
        records: Iterable[TargetRecord | Mapping[str, Any]],
        cycle_start: datetime,
    ) -> list[RecordOutcome]:
        """Attempt every record and return one outcome per input, in order."""
        return [
            self._outcome(index, record, cycle_start)
            for index, record in enumerate(records)
        ]

    def generate_tasks_for_targets(
        self,
        records: Iterable[TargetRecord | Mapping[str, Any]],
        cycle_start: datetime,
    ) -> TaskGenerationResult:
        """Generate tasks for a population snapshot.

        Invalid records are skipped and reported in ``result.skipped``; they
        never abort the batch.  Tasks keep the relative order of the valid
        input records.

        Args:
            records:     TargetRecords or mappings.
            cycle_start: Start of the cycle.

        Returns:
            TaskGenerationResult with tasks, stats, and skipped records.
        """
        t0 = time.monotonic()

        outcomes = self.generate_outcomes(records, cycle_start)

        tasks: list[ScheduledTask] = []
        skipped: list[SkippedRecord] = []
        bins = [0] * self.bin_count
        for outcome in outcomes:
            if outcome.task is not None:
                tasks.append(outcome.task)
                bins[outcome.task.offset_seconds] += 1
            else:
                skipped.append(
                    SkippedRecord(
                        index=outcome.index,
                        target_id=outcome.target_id,
                        reason=outcome.skip_reason or "unknown",
                    )
                )

        elapsed_ms = (time.monotonic() - t0) * 1000
        stats = CycleStats(
            cycle_start=cycle_start,
            total_targets=len(outcomes),
            tasks_generated=len(tasks),
            bin_distribution=dict(enumerate(bins)),
            generation_time_ms=elapsed_ms,
        )

        if skipped:
            logger.warning(
                "Cycle %s: skipped %d of %d targets",
                cycle_start.isoformat(),
                len(skipped),
                stats.total_targets,
            )
        logger.info(
            "Cycle %s: generated %d/%d tasks across %d bins in %.1fms",
            cycle_start.isoformat(),
            stats.tasks_generated,
            stats.total_targets,
            self.bin_count,
            elapsed_ms,
        )
        return TaskGenerationResult(tasks=tasks, stats=stats, skipped=skipped)

    def next_cycle_start(self, now: datetime | None = None) -> datetime:
        """Return the first interval boundary at or after ``now``.

        Boundaries are aligned to the UTC epoch, not to the call time.  Naive
        datetimes are treated as UTC.  The result is timezone-aware UTC.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        elapsed_us = (now - _EPOCH) // timedelta(microseconds=1)
        interval_us = self.interval_seconds * 1_000_000
        boundary_us = -(-elapsed_us // interval_us) * interval_us
        return _EPOCH + timedelta(microseconds=boundary_us)

    def generate_tasks_for_next_cycle(
        self,
        records: Iterable[TargetRecord | Mapping[str, Any]],
        now: datetime | None = None,
    ) -> TaskGenerationResult:
        """Generate tasks for the next interval-aligned cycle.

        Args:
            records: TargetRecords or mappings.
            now:     Reference time (defaults to the current UTC time).
        """
        return self.generate_tasks_for_targets(records, self.next_cycle_start(now))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_target_offset(self, identifier: str) -> int:
        """Return the offset a target would be assigned, in seconds."""
        return compute_offset(identifier, self.bin_count)

    def analyze_distribution(
        self, records: Iterable[TargetRecord | Mapping[str, Any] | str]
    ) -> DistributionStats:
        """Describe how a population spreads over this generator's bins.

        Accepts records, mappings, or bare identifiers.
        """
        ids = (r if isinstance(r, str) else _raw_id(r) for r in records)
        return analyze_distribution(ids, self.bin_count)

    def is_distribution_acceptable(
        self,
        records: Iterable[TargetRecord | Mapping[str, Any] | str],
        max_cv: float | None = None,
    ) -> bool:
        """Return True if the population's coefficient of variation is within bounds.

        ``max_cv`` defaults to the threshold the generator was configured with.
        """
        if max_cv is None:
            max_cv = self._config.max_cv
        return self.analyze_distribution(records).coefficient_of_variation <= max_cv

    @staticmethod
    def bin_summary(stats: CycleStats) -> DistributionStats:
        """Summary statistics over a generated cycle's bin distribution."""
        return summarize_bins(list(stats.bin_distribution.values()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_record(record: Any) -> TargetRecord:
        if isinstance(record, TargetRecord):
            return record
        try:
            if isinstance(record, Mapping):
                return TargetRecord.model_validate(dict(record))
            return TargetRecord.model_validate(record, from_attributes=True)
        except ValidationError as exc:
            raise InvalidArgumentError(
                f"Malformed target record: {exc.error_count()} validation error(s)"
            ) from exc

    def _outcome(self, index: int, record: Any, cycle_start: datetime) -> RecordOutcome:
        try:
            task = self.generate_task_for_target(record, cycle_start)
        except InvalidArgumentError as exc:
            target_id = _raw_id(record)
            logger.warning(
                "Skipping target at index %d (id=%r): %s", index, target_id, exc
            )
            return RecordOutcome(index=index, target_id=target_id, skip_reason=str(exc))
        return RecordOutcome(index=index, target_id=task.target_id, task=task)
