"""
Aggregation keys -- hashable records for multi-dimensional maps.

Every reduction in the consolidation engine is keyed by a combination of
master account, entity, local account and adjustment identity.  These are
named tuples rather than delimited strings, so a key can never collide with
or be mis-parsed as another.
"""

from __future__ import annotations

from typing import NamedTuple
from uuid import UUID


class MappingTarget(NamedTuple):
    """Where one entity-local account lands in the master chart."""

    master_account_id: UUID
    entity_id: UUID


class MasterEntityKey(NamedTuple):
    """(master_account_id, entity_id) -- one consolidation cell."""

    master_account_id: UUID
    entity_id: UUID


class ContributionKey(NamedTuple):
    """(master_account_id, entity_id, account_id) -- one drill-down row."""

    master_account_id: UUID
    entity_id: UUID
    account_id: UUID
