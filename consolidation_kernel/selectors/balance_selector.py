"""
Module: consolidation_kernel.selectors.balance_selector
Responsibility: Read-only retrieval of monthly GL balances for a set of local
    accounts over a contiguous month range.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Complete retrieval: every matching row is returned (paged, chunked).
      This is a correctness requirement, not an optimization.
    - Every row is validated: month in 1..12 and all three amounts finite
      Decimals.

Failure modes:
    - InvalidRecordError on a malformed row.  The whole read fails; no
      partial balance set is ever returned.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from consolidation_kernel.domain.periods import PeriodRange, YearMonth
from consolidation_kernel.models.balances import GLBalance
from consolidation_kernel.selectors.base import (
    BaseSelector,
    require_money,
    require_period,
)


@dataclass(frozen=True)
class GLBalanceRecord:
    """One validated monthly balance row."""

    account_id: UUID
    entity_id: UUID
    period_year: int
    period_month: int
    beginning_balance: Decimal
    ending_balance: Decimal
    net_change: Decimal

    def __post_init__(self) -> None:
        require_period("gl_balances", self.account_id, self.period_year, self.period_month)

    @property
    def year_month(self) -> YearMonth:
        return YearMonth(self.period_year, self.period_month)

    @classmethod
    def from_model(cls, row: GLBalance) -> GLBalanceRecord:
        return cls(
            account_id=row.account_id,
            entity_id=row.entity_id,
            period_year=row.period_year,
            period_month=row.period_month,
            beginning_balance=require_money(
                "gl_balances", row.id, "beginning_balance", row.beginning_balance,
            ),
            ending_balance=require_money(
                "gl_balances", row.id, "ending_balance", row.ending_balance,
            ),
            net_change=require_money("gl_balances", row.id, "net_change", row.net_change),
        )


def period_index_between(model, period: PeriodRange):
    """SQL predicate: (period_year, period_month) within ``period`` inclusive."""
    index = model.period_year * 12 + (model.period_month - 1)
    return index.between(period.start.index, period.end.index)


class BalanceSelector(BaseSelector[GLBalance]):
    """Selector for monthly GL balances."""

    def balances(
        self,
        account_ids: Collection[UUID],
        period: PeriodRange,
    ) -> list[GLBalanceRecord]:
        rows = self.fetch_all_in(
            account_ids,
            lambda chunk: (
                select(GLBalance)
                .where(GLBalance.account_id.in_(chunk))
                .where(period_index_between(GLBalance, period))
            ),
        )
        return [GLBalanceRecord.from_model(r) for r in rows]
