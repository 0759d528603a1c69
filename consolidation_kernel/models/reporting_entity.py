"""
Module: consolidation_kernel.models.reporting_entity
Responsibility: ORM persistence for reporting entities -- named subsets of an
    organization's entities consolidated together for sub-group reporting.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - An entity may belong to zero, one, or several reporting entities.
    - (reporting_entity_id, entity_id) is unique: uq_reporting_entity_member.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consolidation_kernel.db.base import TrackedBase, UUIDString


class ReportingEntity(TrackedBase):
    """A named grouping of entities."""

    __tablename__ = "reporting_entities"

    __table_args__ = (
        Index("idx_reporting_entity_org", "organization_id"),
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
        return f"<ReportingEntity {self.name}>"


class ReportingEntityMember(TrackedBase):
    """Membership of one entity in one reporting entity."""

    __tablename__ = "reporting_entity_members"

    __table_args__ = (
        UniqueConstraint(
            "reporting_entity_id", "entity_id",
            name="uq_reporting_entity_member",
        ),
    )

    reporting_entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("reporting_entities.id"),
        nullable=False,
    )
    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entities.id"),
        nullable=False,
    )
