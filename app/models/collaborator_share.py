"""Collaborator share model: one row per (work, collaborator, role)."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.work import Work
    from app.models.collaborator import Collaborator


class CollaboratorRole(str, Enum):
    """Role a collaborator holds on a work."""
    WRITER = "writer"
    ARTIST = "artist"
    MUSICIAN = "musician"
    PRODUCER = "producer"
    LABEL = "label"


# Roles allowed to hold a slice of the writer's share
PUBLISHING_ELIGIBLE_ROLES = frozenset({
    CollaboratorRole.WRITER,
    CollaboratorRole.ARTIST,
    CollaboratorRole.LABEL,
})

# Roles allowed to hold master ownership
MASTER_ELIGIBLE_ROLES = frozenset({
    CollaboratorRole.ARTIST,
    CollaboratorRole.MUSICIAN,
    CollaboratorRole.PRODUCER,
    CollaboratorRole.LABEL,
})


class CollaboratorShare(Base):
    """
    A collaborator's ownership on a work for one role.

    A collaborator with several roles on the same work (e.g. writer and
    producer) has one row per role, each with its own shares.

    Shares are fractions (0.0000 to 1.0000). The writer's half of publishing
    is the sum of `publishing_ownership` across the work's rows and must
    total 0.50.
    """

    __tablename__ = "collaborator_shares"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    work_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("works.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    collaborator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("collaborators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role_in_song: Mapped[str] = mapped_column(
        SAEnum(CollaboratorRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    publishing_ownership: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=5, scale=4),
        nullable=True,
    )
    master_ownership: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=5, scale=4),
        nullable=True,
    )

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
    work: Mapped["Work"] = relationship(
        "Work",
        back_populates="collaborator_shares",
    )
    collaborator: Mapped["Collaborator"] = relationship(
        "Collaborator",
        back_populates="shares",
    )

    __table_args__ = (
        UniqueConstraint("work_id", "collaborator_id", "role_in_song", name="uq_collaborator_share_role"),
        CheckConstraint(
            "publishing_ownership IS NULL OR (publishing_ownership >= 0 AND publishing_ownership <= 1)",
            name="check_publishing_ownership_range",
        ),
        CheckConstraint(
            "master_ownership IS NULL OR (master_ownership >= 0 AND master_ownership <= 1)",
            name="check_master_ownership_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CollaboratorShare {self.id} role={self.role_in_song} "
            f"publishing={self.publishing_ownership} master={self.master_ownership}>"
        )
