"""Publishing entity share: a slice of the publisher's half of a work."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.work import Work
    from app.models.publishing_entity import PublishingEntity


class PublishingEntityShare(Base):
    """
    Ownership held by a publishing entity on a work.

    The set for a work always sums to 0.50 (the publisher's share) and is
    replaced as a whole on every write.
    """

    __tablename__ = "publishing_entity_shares"

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
    publishing_entity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("publishing_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    ownership_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4),  # 0.0000 to 1.0000
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    work: Mapped["Work"] = relationship(
        "Work",
        back_populates="publishing_entity_shares",
    )
    publishing_entity: Mapped["PublishingEntity"] = relationship(
        "PublishingEntity",
        back_populates="shares",
    )

    __table_args__ = (
        UniqueConstraint("work_id", "publishing_entity_id", name="uq_publishing_entity_share"),
        CheckConstraint(
            "ownership_percentage >= 0 AND ownership_percentage <= 1",
            name="check_ownership_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<PublishingEntityShare {self.id} entity={self.publishing_entity_id} share={self.ownership_percentage}>"
