"""Deterministic offset hashing for staggered polling.

Every target is pinned to a one-second bin inside the polling cycle:

    offset = uint32(SHA256(identifier)[:4]) % bin_count

Properties:
    - Deterministic: the same identifier always lands in the same bin, in
      every process, with no shared state.
    - Uniform: SHA-256 keeps sequential or common-prefix identifiers from
      clustering under the modulo reduction.
    - Stable on growth: adding targets never moves an existing target.
"""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from stagger.scheduling.constants import DEFAULT_BIN_COUNT, MAX_DISTRIBUTION_CV

logger = logging.getLogger("stagger.scheduling.hasher")


class InvalidArgumentError(ValueError):
    """Raised when an identifier or bin count cannot be hashed."""


def _validate_bin_count(bin_count: object) -> None:
    if isinstance(bin_count, bool) or not isinstance(bin_count, int) or bin_count <= 0:
        raise InvalidArgumentError(
            f"Bin count must be a positive integer, got {bin_count!r}"
        )


def _validate(identifier: object, bin_count: object) -> None:
    if not isinstance(identifier, str) or not identifier.strip():
        raise InvalidArgumentError("Target ID is required and cannot be empty")
    _validate_bin_count(bin_count)


def compute_offset(identifier: str, bin_count: int = DEFAULT_BIN_COUNT) -> int:
    """Return the bin index assigned to an identifier.

    The identifier is hashed exactly as given (it is only stripped to check
    that it is non-empty).  Lone surrogates are encoded with ``surrogatepass``
    so ids decoded with ``surrogateescape`` still hash to a stable bin.

    Args:
        identifier: Target ID, e.g. 'patient-123'.
        bin_count:  Number of bins in the cycle.

    Returns:
        Offset in seconds, 0 <= offset < bin_count.

    Raises:
        InvalidArgumentError: If identifier is empty/whitespace or bin_count <= 0.
    """
    _validate(identifier, bin_count)
    digest = hashlib.sha256(identifier.encode("utf-8", "surrogatepass")).digest()
    return int.from_bytes(digest[:4], "big") % bin_count


def compute_fire_time(
    identifier: str,
    cycle_start: datetime,
    bin_count: int = DEFAULT_BIN_COUNT,
) -> datetime:
    """Return ``cycle_start`` shifted by the identifier's offset.

    Args:
        identifier:  Target ID.
        cycle_start: Start of the cycle.
        bin_count:   Number of bins in the cycle.

    Returns:
        Datetime at which the target's task should fire.
    """
    return cycle_start + timedelta(seconds=compute_offset(identifier, bin_count))


@dataclass
class DistributionStats:
    """Per-bin population of a set of identifiers.

    Attributes:
        per_bin_counts: bin index → count, every bin present.
        total:          Number of identifiers hashed.
        min:            Smallest bin population.
        max:            Largest bin population.
        mean:           Mean bin population.
        std_dev:        Population standard deviation of bin populations.
        variance:       Population variance of bin populations.
    """

    per_bin_counts: dict[int, int] = field(default_factory=dict)
    total: int = 0
    min: int = 0
    max: int = 0
    mean: float = 0.0
    std_dev: float = 0.0
    variance: float = 0.0

    @property
    def coefficient_of_variation(self) -> float:
        """stdDev / mean, or 0.0 for an empty population."""
        if self.mean <= 0:
            return 0.0
        return self.std_dev / self.mean


def bin_histogram(identifiers: Iterable[str], bin_count: int) -> list[int]:
    """Count identifiers per bin into a dense list indexed by bin."""
    counts = [0] * bin_count
    for identifier in identifiers:
        counts[compute_offset(identifier, bin_count)] += 1
    return counts


def summarize_bins(counts: list[int]) -> DistributionStats:
    """Compute summary statistics over a dense bin histogram."""
    n = len(counts)
    total = sum(counts)
    mean = total / n
    variance = sum((c - mean) ** 2 for c in counts) / n
    return DistributionStats(
        per_bin_counts=dict(enumerate(counts)),
        total=total,
        min=min(counts),
        max=max(counts),
        mean=mean,
        std_dev=math.sqrt(variance),
        variance=variance,
    )


def analyze_distribution(
    identifiers: Iterable[str],
    bin_count: int = DEFAULT_BIN_COUNT,
) -> DistributionStats:
    """Hash every identifier and describe the resulting spread.

    Args:
        identifiers: Target IDs to analyse.
        bin_count:   Number of bins.

    Returns:
        DistributionStats over all ``bin_count`` bins.

    Raises:
        InvalidArgumentError: If bin_count is invalid or any identifier is empty.
    """
    _validate_bin_count(bin_count)
    stats = summarize_bins(bin_histogram(identifiers, bin_count))
    logger.debug(
        "Distribution over %d bins: total=%d min=%d max=%d mean=%.2f cv=%.3f",
        bin_count, stats.total, stats.min, stats.max, stats.mean,
        stats.coefficient_of_variation,
    )
    return stats


def is_distribution_acceptable(
    identifiers: Iterable[str],
    bin_count: int = DEFAULT_BIN_COUNT,
    max_cv: float = MAX_DISTRIBUTION_CV,
) -> bool:
    """Return True if the coefficient of variation is at most ``max_cv``.

    An empty population is trivially acceptable.
    """
    stats = analyze_distribution(identifiers, bin_count)
    return stats.coefficient_of_variation <= max_cv
