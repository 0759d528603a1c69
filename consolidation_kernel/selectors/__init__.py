"""Selectors for the consolidation kernel (read side)."""

from consolidation_kernel.selectors.adjustment_selector import (
    AdjustmentSelector,
    AllocationRecord,
    ProFormaRecord,
)
from consolidation_kernel.selectors.balance_selector import BalanceSelector, GLBalanceRecord
from consolidation_kernel.selectors.base import BaseSelector
from consolidation_kernel.selectors.budget_selector import (
    BudgetAmountRecord,
    BudgetSelector,
    BudgetVersionRecord,
)
from consolidation_kernel.selectors.chart_selector import (
    ChartSelector,
    LocalAccountRecord,
    MappingRecord,
    MasterAccountRecord,
    SectionFilter,
)
from consolidation_kernel.selectors.scope_selector import (
    EntityRecord,
    OrganizationRecord,
    ReportingEntityRecord,
    ScopeSelector,
)

__all__ = [
    "BaseSelector",
    "ScopeSelector",
    "OrganizationRecord",
    "EntityRecord",
    "ReportingEntityRecord",
    "ChartSelector",
    "SectionFilter",
    "MasterAccountRecord",
    "MappingRecord",
    "LocalAccountRecord",
    "BalanceSelector",
    "GLBalanceRecord",
    "BudgetSelector",
    "BudgetVersionRecord",
    "BudgetAmountRecord",
    "AdjustmentSelector",
    "ProFormaRecord",
    "AllocationRecord",
]
