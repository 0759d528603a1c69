"""
Module: consolidation_kernel.models.adjustments
Responsibility: ORM persistence for out-of-ledger adjustments applied at the
    master-account level: pro forma corrections and allocation schedules.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Amounts use the ledger sign convention (credit-normal stored negative).
    - An allocation always produces equal and opposite source/destination
      entries (enforced by the Adjustment Expander, not this model).
    - is_excluded rows are stored but never applied.

Audit relevance:
    Every adjustment surfaces as its own row in drill-down responses, tagged
    with its id and side, so consolidated numbers can be traced back to the
    manual correction that moved them.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class AllocationSchedule(str, Enum):
    """Schedule shape of an allocation adjustment."""

    SINGLE_MONTH = "single_month"
    MONTHLY_SPREAD = "monthly_spread"


class ProFormaAdjustment(TrackedBase):
    """
    Single- or two-sided manual correction for one (entity, month).

    When offset_master_account_id is set, a mirror entry of the opposite sign
    is applied to the offset account in the same entity and month.
    """

    __tablename__ = "pro_forma_adjustments"

    __table_args__ = (
        Index("idx_pro_forma_org_period", "organization_id", "period_year", "period_month"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    master_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("master_accounts.id"),
        nullable=False,
    )
    offset_master_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("master_accounts.id"),
        nullable=True,
    )
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ProFormaAdjustment {self.master_account_id} "
            f"{self.period_year}-{self.period_month:02d}: {self.amount}>"
        )


class AllocationAdjustment(TrackedBase):
    """
    Inter-entity cost transfer or intra-entity reclass on a schedule.

    single_month uses period_year/period_month, optionally repeating every
    year in that calendar month through repeat_end_year (open-ended if None).
    monthly_spread uses start_year/start_month .. end_year/end_month inclusive.
    """

    __tablename__ = "allocation_adjustments"

    __table_args__ = (
        Index("idx_allocation_org", "organization_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    source_entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    destination_entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    master_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("master_accounts.id"),
        nullable=False,
    )
    destination_master_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("master_accounts.id"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    schedule_type: Mapped[AllocationSchedule] = mapped_column(
        String(20),
        nullable=False,
        default=AllocationSchedule.SINGLE_MONTH.value,
    )

    # single_month
    period_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    period_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_repeating: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    repeat_end_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # monthly_spread
    start_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_month: Mapped[int | None] = mapped_column(Integer, nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_excluded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<AllocationAdjustment {self.schedule_type} {self.amount}>"
