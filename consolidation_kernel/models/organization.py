"""
Module: consolidation_kernel.models.organization
Responsibility: ORM persistence for organizations and their legal entities --
    the outermost dimensions of every consolidated view.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Entity.code is unique within an organization.
    - Inactive entities are excluded from organization-wide scopes (enforced by
      ScopeSelector, not this model).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class Organization(TrackedBase):
    """A tenant that owns entities, a master chart and reporting entities."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"


class Entity(TrackedBase):
    """
    A legal entity with its own books, synced from an external ledger.

    Guarantees:
        - organization_id is required.
        - (organization_id, code) is unique when code is set.
    """

    __tablename__ = "entities"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_entity_org_code"),
        Index("idx_entity_organization", "organization_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("organizations.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Entity {self.code or self.id}: {self.name}>"
