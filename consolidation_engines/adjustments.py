"""
Module: consolidation_engines.adjustments
Responsibility:
    Expand out-of-ledger pro forma and allocation adjustments into
    per-entity, per-master-account, per-month entries inside a requested
    period range.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Pro forma: one PRIMARY entry of ``amount`` on the target master
      account; when an offset account is set, one OFFSET entry of
      ``-amount`` on the offset account, same entity and month.
    - Allocation: for every applicable month, a SOURCE entry of ``-amount``
      on (source entity, master account) and a DESTINATION entry of
      ``+amount`` on (destination entity, destination master account or the
      same master account).  Each pair nets to exactly zero.
    - single_month: the full amount in one month; when repeating, the full
      amount in that calendar month of every year from the start year
      through repeat_end_year (open-ended: through the end of the range).
    - monthly_spread: amount / months over the inclusive [start, end]
      schedule.  Per-month amounts are rounded to storage precision and the
      rounding remainder lands on the final month, so the months sum exactly
      to the configured amount.
    - Only entries whose month lies in the requested range are emitted.

Audit relevance:
    Every entry carries its adjustment id, kind and side so drill-down can
    list the exact correction behind each moved number.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.db.types import MONEY_DECIMAL_PLACES, round_money
from consolidation_kernel.domain.periods import PeriodRange, YearMonth, month_range
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.models.adjustments import AllocationSchedule
from consolidation_kernel.selectors.adjustment_selector import (
    AllocationRecord,
    ProFormaRecord,
)

logger = get_logger("engines.adjustments")


class AdjustmentKind(str, Enum):
    PRO_FORMA = "pro_forma"
    ALLOCATION = "allocation"


class AdjustmentSide(str, Enum):
    PRIMARY = "primary"
    OFFSET = "offset"
    SOURCE = "source"
    DESTINATION = "destination"


@dataclass(frozen=True)
class AdjustmentEntry:
    """One signed monthly delta produced by an adjustment."""

    kind: AdjustmentKind
    adjustment_id: UUID
    side: AdjustmentSide
    entity_id: UUID
    master_account_id: UUID
    month: YearMonth
    amount: Decimal
    description: str = ""


def spread_amounts(amount: Decimal, months: int) -> list[Decimal]:
    """
    Split ``amount`` evenly over ``months``.

    Each share is amount / months at storage precision; the final share
    absorbs the rounding remainder so the shares sum to ``amount`` exactly.
    """
    if months < 1:
        raise ValueError("months must be positive")
    share = round_money(amount / months, MONEY_DECIMAL_PLACES)
    shares = [share] * months
    shares[-1] = amount - share * (months - 1)
    return shares


def allocation_schedule(
    allocation: AllocationRecord,
    period: PeriodRange,
) -> list[tuple[YearMonth, Decimal]]:
    """(month, amount) pairs of an allocation that fall inside ``period``."""
    match allocation.schedule:
        case AllocationSchedule.SINGLE_MONTH:
            if allocation.is_repeating:
                last_year = allocation.repeat_end_year
                if last_year is None:
                    last_year = period.end.year
                months = [
                    YearMonth(year, allocation.start.month)
                    for year in range(allocation.start.year, last_year + 1)
                ]
            else:
                months = [allocation.start]
            scheduled = [(m, allocation.amount) for m in months]
        case AllocationSchedule.MONTHLY_SPREAD:
            months = list(month_range(allocation.start, allocation.end))
            scheduled = list(zip(months, spread_amounts(allocation.amount, len(months))))
        case _:
            raise ValueError(f"Unknown allocation schedule: {allocation.schedule}")
    return [(m, amt) for m, amt in scheduled if period.contains(m)]


class AdjustmentExpander:
    """
    Expand adjustments into monthly entries.

    Contract:
        Pure functions of their inputs; no I/O, no clock.
    """

    @traced_engine("adjustment_expander.pro_forma", "1.0", fingerprint_fields=("period",))
    def expand_pro_forma(
        self,
        *,
        adjustments: Iterable[ProFormaRecord],
        period: PeriodRange,
    ) -> tuple[AdjustmentEntry, ...]:
        entries: list[AdjustmentEntry] = []
        for adj in adjustments:
            month = adj.year_month
            if not period.contains(month):
                continue
            entries.append(
                AdjustmentEntry(
                    kind=AdjustmentKind.PRO_FORMA,
                    adjustment_id=adj.id,
                    side=AdjustmentSide.PRIMARY,
                    entity_id=adj.entity_id,
                    master_account_id=adj.master_account_id,
                    month=month,
                    amount=adj.amount,
                    description=adj.description,
                )
            )
            if adj.offset_master_account_id is not None:
                entries.append(
                    AdjustmentEntry(
                        kind=AdjustmentKind.PRO_FORMA,
                        adjustment_id=adj.id,
                        side=AdjustmentSide.OFFSET,
                        entity_id=adj.entity_id,
                        master_account_id=adj.offset_master_account_id,
                        month=month,
                        amount=-adj.amount,
                        description=adj.description,
                    )
                )
        return tuple(entries)

    @traced_engine("adjustment_expander.allocation", "1.0", fingerprint_fields=("period",))
    def expand_allocations(
        self,
        *,
        allocations: Iterable[AllocationRecord],
        period: PeriodRange,
    ) -> tuple[AdjustmentEntry, ...]:
        entries: list[AdjustmentEntry] = []
        for alloc in allocations:
            schedule = allocation_schedule(alloc, period)
            for month, amount in schedule:
                entries.append(
                    AdjustmentEntry(
                        kind=AdjustmentKind.ALLOCATION,
                        adjustment_id=alloc.id,
                        side=AdjustmentSide.SOURCE,
                        entity_id=alloc.source_entity_id,
                        master_account_id=alloc.master_account_id,
                        month=month,
                        amount=-amount,
                        description=alloc.description,
                    )
                )
                entries.append(
                    AdjustmentEntry(
                        kind=AdjustmentKind.ALLOCATION,
                        adjustment_id=alloc.id,
                        side=AdjustmentSide.DESTINATION,
                        entity_id=alloc.destination_entity_id,
                        master_account_id=alloc.target_master_account_id,
                        month=month,
                        amount=amount,
                        description=alloc.description,
                    )
                )
            logger.debug(
                "allocation_expanded",
                extra={
                    "allocation_id": str(alloc.id),
                    "schedule": alloc.schedule.value,
                    "months_in_range": len(schedule),
                },
            )
        return tuple(entries)

    def expand(
        self,
        *,
        pro_forma: Iterable[ProFormaRecord],
        allocations: Iterable[AllocationRecord],
        period: PeriodRange,
        include_pro_forma: bool = True,
        include_allocations: bool = True,
    ) -> tuple[AdjustmentEntry, ...]:
        """All requested adjustment entries inside ``period``."""
        entries: tuple[AdjustmentEntry, ...] = ()
        if include_pro_forma:
            entries += self.expand_pro_forma(adjustments=pro_forma, period=period)
        if include_allocations:
            entries += self.expand_allocations(allocations=allocations, period=period)
        return entries
