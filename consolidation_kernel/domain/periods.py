"""
Period Bucketer -- calendar months grouped into report columns.

Responsibility:
    Turn a (start month, end month, granularity) request into the ordered
    list of buckets a statement is computed over.  Each bucket carries a
    stable key, a short display label, and the explicit calendar months it
    spans, clipped to the requested range.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Deterministic: identical inputs yield identical bucket tuples.
    - Exact coverage: the union of all bucket months equals exactly the
      calendar months in [start, end], each appearing once, in order.
    - Boundary clipping: a quarter or year at the range edge contains only
      the in-range months.

Failure modes:
    - InvalidPeriodRangeError if a month is outside 1..12, start is after
      end, or the granularity is unknown.

Bucket keys and labels:
    monthly    "2025-01"  / "Jan-25"
    quarterly  "2025-Q1"  / "Q1 25"
    yearly     "FY2025"   / "FY 25"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from consolidation_kernel.exceptions import InvalidPeriodRangeError

_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class Granularity(str, Enum):
    """Bucket size for statement columns."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: str | Granularity) -> Granularity:
        try:
            return cls(value)
        except ValueError:
            raise InvalidPeriodRangeError(
                f"unknown granularity {value!r}", granularity=str(value),
            ) from None


@dataclass(frozen=True, order=True)
class YearMonth:
    """A single calendar month.  Ordered chronologically."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodRangeError(
                f"month {self.month} is outside 1..12",
                year=self.year, month=self.month,
            )
        if self.year < 1:
            raise InvalidPeriodRangeError(
                f"year {self.year} is not positive", year=self.year,
            )

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        return f"{_MONTH_ABBR[self.month - 1]}-{self.year % 100:02d}"

    @property
    def index(self) -> int:
        """Months since year 0, for arithmetic."""
        return self.year * 12 + (self.month - 1)

    @property
    def quarter(self) -> int:
        return (self.month - 1) // 3 + 1

    @classmethod
    def from_index(cls, index: int) -> YearMonth:
        return cls(index // 12, index % 12 + 1)

    def add_months(self, count: int) -> YearMonth:
        return YearMonth.from_index(self.index + count)

    def add_years(self, count: int) -> YearMonth:
        return YearMonth(self.year + count, self.month)

    def __str__(self) -> str:
        return self.key


def month_range(start: YearMonth, end: YearMonth) -> tuple[YearMonth, ...]:
    """Every calendar month in [start, end], inclusive, in order."""
    if start > end:
        return ()
    return tuple(
        YearMonth.from_index(i) for i in range(start.index, end.index + 1)
    )


@dataclass(frozen=True)
class PeriodBucket:
    """
    One report column.

    ``months`` is never empty and is always in chronological order.
    """

    key: str
    label: str
    months: tuple[YearMonth, ...]

    def __post_init__(self) -> None:
        if not self.months:
            raise InvalidPeriodRangeError(f"bucket {self.key} spans no months")

    @property
    def first_month(self) -> YearMonth:
        return self.months[0]

    @property
    def last_month(self) -> YearMonth:
        return self.months[-1]

    @property
    def year(self) -> int:
        return self.first_month.year

    def contains(self, month: YearMonth) -> bool:
        return month in self.months

    def shifted(self, years: int) -> PeriodBucket:
        """Same key and label over the same calendar months ``years`` away."""
        return PeriodBucket(
            key=self.key,
            label=self.label,
            months=tuple(m.add_years(years) for m in self.months),
        )


@dataclass(frozen=True)
class PeriodRange:
    """Validated inclusive month range of a request."""

    start: YearMonth
    end: YearMonth

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidPeriodRangeError(
                f"start {self.start} is after end {self.end}",
                start=self.start.key, end=self.end.key,
            )

    @classmethod
    def of(
        cls, start_year: int, start_month: int, end_year: int, end_month: int,
    ) -> PeriodRange:
        return cls(YearMonth(start_year, start_month), YearMonth(end_year, end_month))

    @property
    def months(self) -> tuple[YearMonth, ...]:
        return month_range(self.start, self.end)

    def contains(self, month: YearMonth) -> bool:
        return self.start <= month <= self.end

    def as_bucket(self, key: str = "total") -> PeriodBucket:
        """The whole range as a single bucket."""
        if self.start == self.end:
            label = self.start.label
        else:
            label = f"{self.start.label} to {self.end.label}"
        return PeriodBucket(key=key, label=label, months=self.months)


def build_period_buckets(
    start: YearMonth,
    end: YearMonth,
    granularity: Granularity | str,
) -> tuple[PeriodBucket, ...]:
    """
    Split [start, end] into ordered buckets of the given granularity.

    Monthly buckets are single months.  Quarterly buckets begin at the
    quarter containing ``start`` and end at the quarter containing ``end``.
    Yearly buckets run start-month..12 for the first year, 1..end-month for
    the last year, and the full year otherwise.
    """
    granularity = Granularity.parse(granularity)
    PeriodRange(start, end)

    months = month_range(start, end)

    if granularity is Granularity.MONTHLY:
        return tuple(
            PeriodBucket(key=m.key, label=m.label, months=(m,)) for m in months
        )

    if granularity is Granularity.QUARTERLY:
        def group_key(m: YearMonth) -> tuple[int, int]:
            return (m.year, m.quarter)

        def describe(group: tuple[int, int]) -> tuple[str, str]:
            year, quarter = group
            return f"{year:04d}-Q{quarter}", f"Q{quarter} {year % 100:02d}"
    else:
        def group_key(m: YearMonth) -> tuple[int, int]:
            return (m.year, 0)

        def describe(group: tuple[int, int]) -> tuple[str, str]:
            year = group[0]
            return f"FY{year:04d}", f"FY {year % 100:02d}"

    buckets: list[PeriodBucket] = []
    current: list[YearMonth] = []
    current_group: tuple[int, int] | None = None
    for m in months:
        group = group_key(m)
        if current and group != current_group:
            key, label = describe(current_group)
            buckets.append(PeriodBucket(key=key, label=label, months=tuple(current)))
            current = []
        current_group = group
        current.append(m)
    if current:
        key, label = describe(current_group)
        buckets.append(PeriodBucket(key=key, label=label, months=tuple(current)))

    return tuple(buckets)


def find_bucket(buckets: tuple[PeriodBucket, ...], key: str) -> PeriodBucket | None:
    for bucket in buckets:
        if bucket.key == key:
            return bucket
    return None
