"""
Pure domain layer.

Value types with NO dependencies on ORM, database or I/O (except
SystemClock).  All domain objects are immutable and deterministic.
"""

from consolidation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from consolidation_kernel.domain.keys import ContributionKey, MappingTarget, MasterEntityKey
from consolidation_kernel.domain.periods import (
    Granularity,
    PeriodBucket,
    PeriodRange,
    YearMonth,
    build_period_buckets,
    find_bucket,
    month_range,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "MappingTarget",
    "MasterEntityKey",
    "ContributionKey",
    "Granularity",
    "YearMonth",
    "PeriodBucket",
    "PeriodRange",
    "build_period_buckets",
    "find_bucket",
    "month_range",
]
