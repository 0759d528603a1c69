"""
Scope Resolver.

Turns a scope discriminator (one entity, a whole organization, or a named
reporting entity) plus its id into the concrete list of entities a report
covers, and the organization those entities belong to.

A scope that exists but covers no entities raises EmptyScopeError; the
service turns that into a valid, zero-filled report.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from consolidation_kernel.exceptions import (
    EmptyScopeError,
    EntityNotFoundError,
    InvalidScopeError,
    OrganizationNotFoundError,
    ReportingEntityNotFoundError,
)
from consolidation_kernel.logging_config import get_logger
from consolidation_kernel.selectors.scope_selector import (
    EntityRecord,
    OrganizationRecord,
    ScopeSelector,
)
from consolidation_modules.statements.models import ScopeKind

logger = get_logger("modules.statements.scope")


@dataclass(frozen=True)
class ResolvedScope:
    kind: ScopeKind
    scope_id: UUID
    organization_id: UUID
    display_name: str
    entities: tuple[EntityRecord, ...]

    @property
    def entity_ids(self) -> tuple[UUID, ...]:
        return tuple(e.id for e in self.entities)

    def entity_name(self, entity_id: UUID) -> str:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity.name
        return ""


class ScopeResolver:
    """Resolve scopes through a ScopeSelector bound to one session."""

    def __init__(self, selector: ScopeSelector):
        self._selector = selector

    def resolve(self, kind: ScopeKind | str, scope_id: UUID | None) -> ResolvedScope:
        kind = ScopeKind.parse(kind)
        if scope_id is None:
            raise InvalidScopeError(kind.value, "scope id is required")

        match kind:
            case ScopeKind.ENTITY:
                resolved = self._resolve_entity(scope_id)
            case ScopeKind.ORGANIZATION:
                resolved = self._resolve_organization(scope_id)
            case ScopeKind.REPORTING_ENTITY:
                resolved = self._resolve_reporting_entity(scope_id)

        if not resolved.entities:
            logger.info(
                "scope_empty",
                extra={"scope_kind": kind.value, "scope_id": str(scope_id)},
            )
            raise EmptyScopeError(
                kind.value,
                str(scope_id),
                organization_id=str(resolved.organization_id),
                display_name=resolved.display_name,
            )

        logger.info(
            "scope_resolved",
            extra={
                "scope_kind": kind.value,
                "scope_id": str(scope_id),
                "organization_id": str(resolved.organization_id),
                "entity_count": len(resolved.entities),
            },
        )
        return resolved

    def organization(self, organization_id: UUID) -> OrganizationRecord:
        org = self._selector.get_organization(organization_id)
        if org is None:
            raise OrganizationNotFoundError(str(organization_id))
        return org

    def _resolve_entity(self, entity_id: UUID) -> ResolvedScope:
        entity = self._selector.get_entity(entity_id)
        if entity is None:
            raise EntityNotFoundError(str(entity_id))
        return ResolvedScope(
            kind=ScopeKind.ENTITY,
            scope_id=entity_id,
            organization_id=entity.organization_id,
            display_name=entity.name,
            entities=(entity,),
        )

    def _resolve_organization(self, organization_id: UUID) -> ResolvedScope:
        org = self.organization(organization_id)
        entities = self._selector.entities_for_organization(organization_id)
        return ResolvedScope(
            kind=ScopeKind.ORGANIZATION,
            scope_id=organization_id,
            organization_id=organization_id,
            display_name=org.name,
            entities=_sorted(entities),
        )

    def _resolve_reporting_entity(self, reporting_entity_id: UUID) -> ResolvedScope:
        group = self._selector.get_reporting_entity(reporting_entity_id)
        if group is None:
            raise ReportingEntityNotFoundError(str(reporting_entity_id))
        entities = (
            self._selector.entities_by_ids(list(group.member_ids))
            if group.member_ids else []
        )
        return ResolvedScope(
            kind=ScopeKind.REPORTING_ENTITY,
            scope_id=reporting_entity_id,
            organization_id=group.organization_id,
            display_name=group.name,
            entities=_sorted(entities),
        )


def _sorted(entities: list[EntityRecord]) -> tuple[EntityRecord, ...]:
    return tuple(sorted(entities, key=lambda e: (e.code or e.name, e.name, str(e.id))))
