"""
Module: consolidation_kernel.models.balances
Responsibility: ORM persistence for monthly general-ledger balances, one row
    per local account per calendar month, populated by the external ledger
    synchronization process.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (account_id, entity_id, period_year, period_month):
      uq_gl_balance_account_period.
    - Credit-normal balances are stored negative.  The sign flip happens at
      display time, never here.

Audit relevance:
    net_change drives flow statements; ending_balance of a bucket's last month
    drives point-in-time statements; beginning_balance feeds cash-flow deltas.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class GLBalance(TrackedBase):
    """Monthly balance snapshot for one local account."""

    __tablename__ = "gl_balances"

    __table_args__ = (
        UniqueConstraint(
            "account_id", "entity_id", "period_year", "period_month",
            name="uq_gl_balance_account_period",
        ),
        Index("idx_gl_balance_entity_period", "entity_id", "period_year", "period_month"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )
    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    beginning_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    ending_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    net_change: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<GLBalance {self.account_id} "
            f"{self.period_year}-{self.period_month:02d}: {self.ending_balance}>"
        )
