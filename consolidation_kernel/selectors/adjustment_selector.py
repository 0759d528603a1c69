"""
Module: consolidation_kernel.selectors.adjustment_selector
Responsibility: Read-only retrieval of pro forma and allocation adjustments
    for one organization, validated into schedule-typed DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Excluded adjustments are never returned.
    - A single_month allocation carries a valid (period_year, period_month);
      a repeat end year, when set, is not before the period year.
    - A monthly_spread allocation carries a valid start and end month with
      start <= end.
    - Pro forma rows are limited to the requested month range in SQL.
      Allocation schedules may start before the range and still reach into
      it, so they are filtered by the expander instead.

Failure modes:
    - InvalidRecordError on a row whose schedule fields are inconsistent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from consolidation_kernel.domain.periods import PeriodRange, YearMonth
from consolidation_kernel.exceptions import InvalidRecordError
from consolidation_kernel.models.adjustments import (
    AllocationAdjustment,
    AllocationSchedule,
    ProFormaAdjustment,
)
from consolidation_kernel.selectors.balance_selector import period_index_between
from consolidation_kernel.selectors.base import (
    BaseSelector,
    require_enum,
    require_money,
    require_period,
)


@dataclass(frozen=True)
class ProFormaRecord:
    id: UUID
    entity_id: UUID
    master_account_id: UUID
    offset_master_account_id: UUID | None
    period_year: int
    period_month: int
    amount: Decimal
    description: str = ""

    def __post_init__(self) -> None:
        require_period("pro_forma_adjustments", self.id, self.period_year, self.period_month)

    @property
    def year_month(self) -> YearMonth:
        return YearMonth(self.period_year, self.period_month)


@dataclass(frozen=True)
class AllocationRecord:
    """
    One allocation with a validated schedule.

    ``start`` is the single month (single_month) or the first month of the
    spread (monthly_spread).  ``end`` is the last month of the spread, or
    None for single_month.
    """

    id: UUID
    source_entity_id: UUID
    destination_entity_id: UUID
    master_account_id: UUID
    destination_master_account_id: UUID | None
    amount: Decimal
    schedule: AllocationSchedule
    start: YearMonth
    end: YearMonth | None = None
    is_repeating: bool = False
    repeat_end_year: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.schedule is AllocationSchedule.MONTHLY_SPREAD:
            if self.end is None or self.end < self.start:
                raise InvalidRecordError(
                    "allocation_adjustments", self.id,
                    "monthly_spread end is missing or before start",
                )
        elif self.end is not None:
            raise InvalidRecordError(
                "allocation_adjustments", self.id,
                "single_month allocation must not carry an end month",
            )
        if (
            self.is_repeating
            and self.repeat_end_year is not None
            and self.repeat_end_year < self.start.year
        ):
            raise InvalidRecordError(
                "allocation_adjustments", self.id,
                f"repeat_end_year {self.repeat_end_year} precedes {self.start.year}",
            )

    @property
    def target_master_account_id(self) -> UUID:
        """Master account of the destination side."""
        return self.destination_master_account_id or self.master_account_id

    @classmethod
    def from_model(cls, row: AllocationAdjustment) -> AllocationRecord:
        table = "allocation_adjustments"
        schedule = require_enum(
            AllocationSchedule, table, row.id, "schedule_type", row.schedule_type,
        )
        if schedule is AllocationSchedule.SINGLE_MONTH:
            require_period(table, row.id, row.period_year, row.period_month)
            start = YearMonth(row.period_year, row.period_month)
            end = None
        else:
            require_period(table, row.id, row.start_year, row.start_month)
            require_period(table, row.id, row.end_year, row.end_month)
            start = YearMonth(row.start_year, row.start_month)
            end = YearMonth(row.end_year, row.end_month)
        return cls(
            id=row.id,
            source_entity_id=row.source_entity_id,
            destination_entity_id=row.destination_entity_id,
            master_account_id=row.master_account_id,
            destination_master_account_id=row.destination_master_account_id,
            amount=require_money(table, row.id, "amount", row.amount),
            schedule=schedule,
            start=start,
            end=end,
            is_repeating=bool(row.is_repeating) and schedule is AllocationSchedule.SINGLE_MONTH,
            repeat_end_year=row.repeat_end_year,
            description=row.description or "",
        )


class AdjustmentSelector(BaseSelector[ProFormaAdjustment]):
    """Selector for out-of-ledger adjustments."""

    def pro_forma(
        self,
        organization_id: UUID,
        period: PeriodRange,
    ) -> list[ProFormaRecord]:
        stmt = (
            select(ProFormaAdjustment)
            .where(ProFormaAdjustment.organization_id == organization_id)
            .where(ProFormaAdjustment.is_excluded.is_(False))
            .where(period_index_between(ProFormaAdjustment, period))
        )
        return [
            ProFormaRecord(
                id=r.id,
                entity_id=r.entity_id,
                master_account_id=r.master_account_id,
                offset_master_account_id=r.offset_master_account_id,
                period_year=r.period_year,
                period_month=r.period_month,
                amount=require_money("pro_forma_adjustments", r.id, "amount", r.amount),
                description=r.description or "",
            )
            for r in self.fetch_all(stmt)
        ]

    def allocations(self, organization_id: UUID) -> list[AllocationRecord]:
        stmt = (
            select(AllocationAdjustment)
            .where(AllocationAdjustment.organization_id == organization_id)
            .where(AllocationAdjustment.is_excluded.is_(False))
        )
        return [AllocationRecord.from_model(r) for r in self.fetch_all(stmt)]
