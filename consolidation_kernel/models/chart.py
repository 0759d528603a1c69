"""
Module: consolidation_kernel.models.chart
Responsibility: ORM persistence for the canonical master chart, each entity's
    local chart, and the explicit mapping table between them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one master account per (entity, local account):
      uq_account_mapping_entity_account.
    - Local accounts may be partially or fully unmapped; unmapped accounts are
      excluded from consolidated views until mapped.
    - Classification is one of Asset, Liability, Equity, Revenue, Expense.

Audit relevance:
    The mapping table is the only path from entity-local books into
    consolidated statements.  A drill-down row always names the local account
    and the master account it was mapped through.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class Classification(str, Enum):
    """Top-level account classification."""

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"

    @property
    def is_credit_normal(self) -> bool:
        """Credit-normal balances are stored negative and flipped for display."""
        return self in _CREDIT_NORMAL


_CREDIT_NORMAL = frozenset({
    Classification.LIABILITY,
    Classification.EQUITY,
    Classification.REVENUE,
})


class MasterAccount(TrackedBase):
    """
    Canonical, organization-wide chart entry.

    Guarantees:
        - account_number is unique within the organization.
        - account_type is the bookkeeping system's native type string
          (e.g. "Bank", "Accounts Receivable", "Other Current Liability").
    """

    __tablename__ = "master_accounts"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "account_number",
            name="uq_master_account_org_number",
        ),
        Index("idx_master_account_org", "organization_id"),
        Index("idx_master_account_classification", "classification"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    classification: Mapped[Classification] = mapped_column(
        String(20),
        nullable=False,
    )
    account_type: Mapped[str] = mapped_column(String(100), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<MasterAccount {self.account_number}: {self.name}>"


class Account(TrackedBase):
    """An entity-local ledger account as synced from the bookkeeping system."""

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_entity", "entity_id"),
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    classification: Mapped[Classification] = mapped_column(
        String(20),
        nullable=False,
    )
    account_type: Mapped[str] = mapped_column(String(100), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.account_number or '-'}: {self.name}>"


class AccountMapping(TrackedBase):
    """(master_account_id, entity_id, account_id) mapping row."""

    __tablename__ = "account_mappings"

    __table_args__ = (
        UniqueConstraint(
            "entity_id", "account_id",
            name="uq_account_mapping_entity_account",
        ),
        Index("idx_account_mapping_master", "master_account_id"),
    )

    master_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("master_accounts.id"),
        nullable=False,
    )
    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AccountMapping {self.account_id} -> {self.master_account_id}>"
