"""
Module: consolidation_kernel.models.budget
Responsibility: ORM persistence for budget versions and their monthly amounts.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one active version per (entity, fiscal_year).  Resolved at read
      time by BudgetSelector (most recently created wins, with a warning).
    - One amount per (budget_version_id, account_id, period_year, period_month):
      uq_budget_amount_version_account_period.
    - Amounts use the ledger sign convention (credit-normal stored negative).
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class BudgetStatus(str, Enum):
    """Budget version lifecycle."""

    DRAFT = "draft"
    APPROVED = "approved"
    ARCHIVED = "archived"


class BudgetVersion(TrackedBase):
    """A named plan for one entity and fiscal (calendar) year."""

    __tablename__ = "budget_versions"

    __table_args__ = (
        Index("idx_budget_version_entity_year", "entity_id", "fiscal_year"),
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Budget")
    status: Mapped[BudgetStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BudgetStatus.DRAFT.value,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<BudgetVersion {self.name} FY{self.fiscal_year} active={self.is_active}>"


class BudgetAmount(TrackedBase):
    """Planned amount for one local account in one month of a version."""

    __tablename__ = "budget_amounts"

    __table_args__ = (
        UniqueConstraint(
            "budget_version_id", "account_id", "period_year", "period_month",
            name="uq_budget_amount_version_account_period",
        ),
    )

    budget_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budget_versions.id"),
        nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
