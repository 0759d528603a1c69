"""ORM models for the consolidation kernel (read side of the external stores)."""

from consolidation_kernel.models.adjustments import (
    AllocationAdjustment,
    AllocationSchedule,
    ProFormaAdjustment,
)
from consolidation_kernel.models.balances import GLBalance
from consolidation_kernel.models.budget import BudgetAmount, BudgetStatus, BudgetVersion
from consolidation_kernel.models.chart import (
    Account,
    AccountMapping,
    Classification,
    MasterAccount,
)
from consolidation_kernel.models.organization import Entity, Organization
from consolidation_kernel.models.reporting_entity import (
    ReportingEntity,
    ReportingEntityMember,
)

__all__ = [
    "Organization",
    "Entity",
    "Classification",
    "MasterAccount",
    "Account",
    "AccountMapping",
    "GLBalance",
    "BudgetStatus",
    "BudgetVersion",
    "BudgetAmount",
    "ReportingEntity",
    "ReportingEntityMember",
    "ProFormaAdjustment",
    "AllocationAdjustment",
    "AllocationSchedule",
]
