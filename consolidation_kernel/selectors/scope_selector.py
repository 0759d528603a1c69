"""
Module: consolidation_kernel.selectors.scope_selector
Responsibility: Read-only lookups of organizations, entities and reporting
    entities with their members -- the raw material of scope resolution.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Organization-wide entity lists contain active entities only.
    - Reporting entity member lists are deduplicated and sorted, and exclude
      inactive entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from consolidation_kernel.models.organization import Entity, Organization
from consolidation_kernel.models.reporting_entity import (
    ReportingEntity,
    ReportingEntityMember,
)
from consolidation_kernel.selectors.base import BaseSelector, require_uuid


@dataclass(frozen=True)
class OrganizationRecord:
    id: UUID
    name: str


@dataclass(frozen=True)
class EntityRecord:
    """An entity as seen by the consolidation engine."""

    id: UUID
    organization_id: UUID
    name: str
    code: str | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, row: Entity) -> EntityRecord:
        return cls(
            id=row.id,
            organization_id=require_uuid("entities", row.id, "organization_id", row.organization_id),
            name=row.name,
            code=row.code,
            is_active=bool(row.is_active),
        )


@dataclass(frozen=True)
class ReportingEntityRecord:
    """A reporting entity and its current (active) member entity ids."""

    id: UUID
    organization_id: UUID
    name: str
    code: str | None
    is_active: bool
    member_ids: tuple[UUID, ...] = ()


class ScopeSelector(BaseSelector[Entity]):
    """Selector for the organization / entity / reporting-entity hierarchy."""

    def get_organization(self, organization_id: UUID) -> OrganizationRecord | None:
        row = self.session.get(Organization, organization_id)
        if row is None:
            return None
        return OrganizationRecord(id=row.id, name=row.name)

    def get_entity(self, entity_id: UUID) -> EntityRecord | None:
        row = self.session.get(Entity, entity_id)
        return EntityRecord.from_model(row) if row is not None else None

    def entities_for_organization(
        self,
        organization_id: UUID,
        active_only: bool = True,
    ) -> list[EntityRecord]:
        stmt = select(Entity).where(Entity.organization_id == organization_id)
        if active_only:
            stmt = stmt.where(Entity.is_active.is_(True))
        return [EntityRecord.from_model(r) for r in self.fetch_all(stmt)]

    def entities_by_ids(self, entity_ids: list[UUID]) -> list[EntityRecord]:
        rows = self.fetch_all_in(
            entity_ids,
            lambda chunk: select(Entity).where(Entity.id.in_(chunk)),
        )
        return [EntityRecord.from_model(r) for r in rows]

    def get_reporting_entity(
        self, reporting_entity_id: UUID,
    ) -> ReportingEntityRecord | None:
        row = self.session.get(ReportingEntity, reporting_entity_id)
        if row is None:
            return None
        members = self._active_members([row.id]).get(row.id, ())
        return self._to_record(row, members)

    def reporting_entities_for_organization(
        self,
        organization_id: UUID,
        active_only: bool = True,
    ) -> list[ReportingEntityRecord]:
        stmt = select(ReportingEntity).where(
            ReportingEntity.organization_id == organization_id,
        )
        if active_only:
            stmt = stmt.where(ReportingEntity.is_active.is_(True))
        rows = self.fetch_all(stmt)
        members = self._active_members([r.id for r in rows])
        records = [self._to_record(r, members.get(r.id, ())) for r in rows]
        return sorted(records, key=lambda r: (r.name, str(r.id)))

    def _active_members(
        self, reporting_entity_ids: list[UUID],
    ) -> dict[UUID, tuple[UUID, ...]]:
        rows = self.fetch_all_in(
            reporting_entity_ids,
            lambda chunk: (
                select(ReportingEntityMember)
                .join(Entity, Entity.id == ReportingEntityMember.entity_id)
                .where(ReportingEntityMember.reporting_entity_id.in_(chunk))
                .where(Entity.is_active.is_(True))
            ),
        )
        grouped: dict[UUID, set[UUID]] = {}
        for row in rows:
            grouped.setdefault(row.reporting_entity_id, set()).add(row.entity_id)
        return {
            re_id: tuple(sorted(ids, key=str)) for re_id, ids in grouped.items()
        }

    @staticmethod
    def _to_record(
        row: ReportingEntity, member_ids: tuple[UUID, ...],
    ) -> ReportingEntityRecord:
        return ReportingEntityRecord(
            id=row.id,
            organization_id=row.organization_id,
            name=row.name,
            code=row.code,
            is_active=bool(row.is_active),
            member_ids=member_ids,
        )
