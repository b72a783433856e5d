"""Work (song) model with lockable publishing and master facets."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Date, Numeric, Boolean, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.collaborator_share import CollaboratorShare
    from app.models.publishing_entity_share import PublishingEntityShare
    from app.models.contract import Contract


class SplitFacet(str, Enum):
    """Independently lockable halves of a work's ownership."""
    PUBLISHING = "publishing"  # Composition: writer's share + publisher's share
    MASTER = "master"          # Sound recording


class Work(Base):
    """
    A musical work and its split lock state.

    Lock flags are one-way: once `publishing_locked` or `master_locked` is
    true, no ledger operation resets it.
    """

    __tablename__ = "works"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Identifiers
    isrc_code: Mapped[str] = mapped_column(String(20), nullable=True, index=True)
    iswc_code: Mapped[str] = mapped_column(String(20), nullable=True)
    catalog_number: Mapped[str] = mapped_column(String(50), nullable=True)
    release_date: Mapped[date] = mapped_column(Date, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)

    # Lock state
    publishing_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    publishing_locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    master_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    master_locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    # Fraction of master revenue reserved for the label (0.0000 to 1.0000)
    label_master_share: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4),
        default=Decimal("0"),
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    collaborator_shares: Mapped[List["CollaboratorShare"]] = relationship(
        "CollaboratorShare",
        back_populates="work",
        cascade="all, delete-orphan",
    )
    publishing_entity_shares: Mapped[List["PublishingEntityShare"]] = relationship(
        "PublishingEntityShare",
        back_populates="work",
        cascade="all, delete-orphan",
    )
    contracts: Mapped[List["Contract"]] = relationship(
        "Contract",
        back_populates="work",
    )

    __table_args__ = (
        CheckConstraint(
            "label_master_share >= 0 AND label_master_share <= 1",
            name="check_label_master_share_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Work {self.id} title={self.title}>"

    def is_locked(self, facet: SplitFacet) -> bool:
        """Check whether a facet's splits are frozen."""
        if facet == SplitFacet.PUBLISHING:
            return self.publishing_locked
        return self.master_locked
