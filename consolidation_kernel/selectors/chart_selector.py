"""
Module: consolidation_kernel.selectors.chart_selector
Responsibility: Read-only access to the master chart, the entity-local charts,
    and the mapping table between them.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - mappings() returns only rows whose master account belongs to the given
      organization and matches the section filter, and whose entity is in the
      given entity list.  The filter is applied in SQL; retrieval is paged.
    - Classification values are validated against the Classification enum.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from consolidation_kernel.models.chart import (
    Account,
    AccountMapping,
    Classification,
    MasterAccount,
)
from consolidation_kernel.selectors.base import BaseSelector, require_enum


@dataclass(frozen=True)
class SectionFilter:
    """Classification plus an optional set of native account types."""

    classification: Classification
    account_types: frozenset[str] = frozenset()

    def matches(self, classification: Classification, account_type: str) -> bool:
        if classification != self.classification:
            return False
        return not self.account_types or account_type in self.account_types


@dataclass(frozen=True)
class MasterAccountRecord:
    id: UUID
    organization_id: UUID
    account_number: str
    name: str
    classification: Classification
    account_type: str
    display_order: int = 0
    is_active: bool = True

    @classmethod
    def from_model(cls, row: MasterAccount) -> MasterAccountRecord:
        return cls(
            id=row.id,
            organization_id=row.organization_id,
            account_number=row.account_number,
            name=row.name,
            classification=require_enum(
                Classification, "master_accounts", row.id,
                "classification", row.classification,
            ),
            account_type=row.account_type,
            display_order=row.display_order or 0,
            is_active=bool(row.is_active),
        )


@dataclass(frozen=True)
class MappingRecord:
    master_account_id: UUID
    entity_id: UUID
    account_id: UUID


@dataclass(frozen=True)
class LocalAccountRecord:
    id: UUID
    entity_id: UUID
    name: str
    account_number: str | None
    classification: Classification
    account_type: str

    @classmethod
    def from_model(cls, row: Account) -> LocalAccountRecord:
        return cls(
            id=row.id,
            entity_id=row.entity_id,
            name=row.name,
            account_number=row.account_number,
            classification=require_enum(
                Classification, "accounts", row.id,
                "classification", row.classification,
            ),
            account_type=row.account_type,
        )


class ChartSelector(BaseSelector[MasterAccount]):
    """Selector for master accounts, local accounts and mappings."""

    def master_accounts(
        self,
        organization_id: UUID,
        section: SectionFilter | None = None,
        active_only: bool = True,
    ) -> list[MasterAccountRecord]:
        stmt = select(MasterAccount).where(
            MasterAccount.organization_id == organization_id,
        )
        if active_only:
            stmt = stmt.where(MasterAccount.is_active.is_(True))
        if section is not None:
            stmt = stmt.where(
                MasterAccount.classification == section.classification.value,
            )
            if section.account_types:
                stmt = stmt.where(
                    MasterAccount.account_type.in_(sorted(section.account_types)),
                )
        return [MasterAccountRecord.from_model(r) for r in self.fetch_all(stmt)]

    def mappings(
        self,
        organization_id: UUID,
        entity_ids: Collection[UUID],
        section: SectionFilter | None = None,
        active_only: bool = True,
    ) -> list[MappingRecord]:
        def build(chunk: list[UUID]):
            stmt = (
                select(AccountMapping)
                .join(MasterAccount, MasterAccount.id == AccountMapping.master_account_id)
                .where(MasterAccount.organization_id == organization_id)
                .where(AccountMapping.entity_id.in_(chunk))
            )
            if active_only:
                stmt = stmt.where(MasterAccount.is_active.is_(True))
            if section is not None:
                stmt = stmt.where(
                    MasterAccount.classification == section.classification.value,
                )
                if section.account_types:
                    stmt = stmt.where(
                        MasterAccount.account_type.in_(sorted(section.account_types)),
                    )
            return stmt

        return [
            MappingRecord(
                master_account_id=r.master_account_id,
                entity_id=r.entity_id,
                account_id=r.account_id,
            )
            for r in self.fetch_all_in(entity_ids, build)
        ]

    def local_accounts(self, account_ids: Collection[UUID]) -> list[LocalAccountRecord]:
        rows = self.fetch_all_in(
            account_ids,
            lambda chunk: select(Account).where(Account.id.in_(chunk)),
        )
        return [LocalAccountRecord.from_model(r) for r in rows]
