"""
Module: consolidation_engines.mapping
Responsibility:
    Resolve the canonical master chart against each in-scope entity's local
    chart through the explicit mapping table, and build the two indexes the
    aggregator and drill-down resolver need.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are validated
    selector DTOs.

Invariants enforced:
    - Exactly one master account per (entity, local account).  Two mapping
      rows that send the same local account to different master accounts
      raise InvalidRecordError.
    - Mapping rows are kept only if their master account is in the supplied
      chart and their entity is in scope.  Unmapped local accounts never
      reach the aggregator, so they are excluded from consolidated totals.
    - Several local accounts of one entity may map to one master account;
      accounts_by_cell keeps all of them.

Audit relevance:
    account_index is the only path from a ledger row into a statement line.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from consolidation_engines.tracer import traced_engine
from consolidation_kernel.domain.keys import MappingTarget, MasterEntityKey
from consolidation_kernel.exceptions import InvalidRecordError
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.selectors.chart_selector import (
    MappingRecord,
    MasterAccountRecord,
    SectionFilter,
)

logger = get_logger("engines.mapping")


def master_sort_key(account: MasterAccountRecord) -> tuple[str, str, str]:
    return (account.account_number, account.name, str(account.id))


@dataclass(frozen=True)
class AccountMap:
    """
    The resolved chart for one request.

    account_index:     local account id -> (master_account_id, entity_id)
    accounts_by_cell:  (master_account_id, entity_id) -> local account ids
    """

    master_accounts: tuple[MasterAccountRecord, ...]
    account_index: Mapping[UUID, MappingTarget] = field(default_factory=dict)
    accounts_by_cell: Mapping[MasterEntityKey, tuple[UUID, ...]] = field(
        default_factory=dict,
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_id", {m.id: m for m in self.master_accounts},
        )

    def master(self, master_account_id: UUID) -> MasterAccountRecord | None:
        return self._by_id.get(master_account_id)

    @property
    def local_account_ids(self) -> frozenset[UUID]:
        return frozenset(self.account_index)

    def masters_matching(self, section: SectionFilter) -> list[MasterAccountRecord]:
        """Master accounts of one section, sorted by account number."""
        return sorted(
            (
                m for m in self.master_accounts
                if section.matches(m.classification, m.account_type)
            ),
            key=master_sort_key,
        )


class AccountMapper:
    """
    Build AccountMap indexes from the chart and the mapping table.

    Contract:
        Pure function of its inputs; no I/O.
    """

    @traced_engine("account_mapper", "1.0", fingerprint_fields=("entity_ids",))
    def build(
        self,
        *,
        master_accounts: Iterable[MasterAccountRecord],
        mappings: Iterable[MappingRecord],
        entity_ids: Collection[UUID],
    ) -> AccountMap:
        masters = tuple(sorted(master_accounts, key=master_sort_key))
        master_ids = {m.id for m in masters}
        in_scope = set(entity_ids)

        account_index: dict[UUID, MappingTarget] = {}
        by_cell: dict[MasterEntityKey, list[UUID]] = {}
        skipped = 0
        for row in mappings:
            if row.master_account_id not in master_ids or row.entity_id not in in_scope:
                skipped += 1
                continue
            target = MappingTarget(row.master_account_id, row.entity_id)
            existing = account_index.get(row.account_id)
            if existing is not None:
                if existing != target:
                    raise InvalidRecordError(
                        "account_mappings",
                        row.account_id,
                        "local account is mapped to more than one master account",
                    )
                continue
            account_index[row.account_id] = target
            by_cell.setdefault(
                MasterEntityKey(row.master_account_id, row.entity_id), [],
            ).append(row.account_id)

        logger.debug(
            "account_map_built",
            extra={
                "master_accounts": len(masters),
                "mapped_accounts": len(account_index),
                "skipped_mappings": skipped,
            },
        )
        return AccountMap(
            master_accounts=masters,
            account_index=account_index,
            accounts_by_cell={
                cell: tuple(sorted(ids, key=str)) for cell, ids in by_cell.items()
            },
        )
