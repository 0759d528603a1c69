"""
Module: consolidation_kernel.selectors.budget_selector
Responsibility: Resolve each entity's active budget version per fiscal year
    and read that version's monthly amounts.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - At most one active version per (entity, fiscal_year) is used.  If the
      store holds several, the most recently created wins (ties broken by id)
      and a ``budget_multiple_active_versions`` warning is logged.
    - Amounts are only taken for months in their version's fiscal year.
    - An entity with no active version contributes zero budget.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from consolidation_kernel.domain.periods import PeriodRange, YearMonth
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.models.budget import BudgetAmount, BudgetStatus, BudgetVersion
from consolidation_kernel.selectors.balance_selector import period_index_between
from consolidation_kernel.selectors.base import (
    BaseSelector,
    require_enum,
    require_money,
    require_period,
)

logger = get_logger("selectors.budget")


@dataclass(frozen=True)
class BudgetVersionRecord:
    id: UUID
    entity_id: UUID
    fiscal_year: int
    name: str
    status: BudgetStatus
    created_at: datetime | None = None


@dataclass(frozen=True)
class BudgetAmountRecord:
    budget_version_id: UUID
    account_id: UUID
    period_year: int
    period_month: int
    amount: Decimal

    def __post_init__(self) -> None:
        require_period("budget_amounts", self.budget_version_id, self.period_year, self.period_month)

    @property
    def year_month(self) -> YearMonth:
        return YearMonth(self.period_year, self.period_month)


class BudgetSelector(BaseSelector[BudgetVersion]):
    """Selector for active budget versions and their amounts."""

    def active_versions(
        self,
        entity_ids: Collection[UUID],
        fiscal_years: Collection[int],
    ) -> dict[tuple[UUID, int], BudgetVersionRecord]:
        """Active version per (entity_id, fiscal_year)."""
        years = sorted(set(fiscal_years))
        if not years:
            return {}
        rows = self.fetch_all_in(
            entity_ids,
            lambda chunk: (
                select(BudgetVersion)
                .where(BudgetVersion.entity_id.in_(chunk))
                .where(BudgetVersion.fiscal_year.in_(years))
                .where(BudgetVersion.is_active.is_(True))
            ),
        )

        candidates: dict[tuple[UUID, int], list[BudgetVersionRecord]] = {}
        for row in rows:
            record = BudgetVersionRecord(
                id=row.id,
                entity_id=row.entity_id,
                fiscal_year=row.fiscal_year,
                name=row.name,
                status=require_enum(
                    BudgetStatus, "budget_versions", row.id, "status", row.status,
                ),
                created_at=row.created_at,
            )
            candidates.setdefault((record.entity_id, record.fiscal_year), []).append(record)

        resolved: dict[tuple[UUID, int], BudgetVersionRecord] = {}
        for key, versions in candidates.items():
            versions.sort(
                key=lambda v: (v.created_at.timestamp() if v.created_at else 0.0, str(v.id)),
            )
            if len(versions) > 1:
                logger.warning(
                    "budget_multiple_active_versions",
                    extra={
                        "entity_id": str(key[0]),
                        "fiscal_year": key[1],
                        "version_ids": [str(v.id) for v in versions],
                        "selected_version_id": str(versions[-1].id),
                    },
                )
            resolved[key] = versions[-1]
        return resolved

    def amounts(
        self,
        versions: Collection[BudgetVersionRecord],
        period: PeriodRange,
    ) -> list[BudgetAmountRecord]:
        fiscal_year = {v.id: v.fiscal_year for v in versions}
        rows = self.fetch_all_in(
            fiscal_year.keys(),
            lambda chunk: (
                select(BudgetAmount)
                .where(BudgetAmount.budget_version_id.in_(chunk))
                .where(period_index_between(BudgetAmount, period))
            ),
        )
        records = []
        for row in rows:
            if row.period_year != fiscal_year[row.budget_version_id]:
                continue
            records.append(
                BudgetAmountRecord(
                    budget_version_id=row.budget_version_id,
                    account_id=row.account_id,
                    period_year=row.period_year,
                    period_month=row.period_month,
                    amount=require_money("budget_amounts", row.id, "amount", row.amount),
                )
            )
        return records
