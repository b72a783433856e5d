"""Publishing entity model (internal or external publishing company)."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.publishing_entity_share import PublishingEntityShare


class PublishingEntity(Base):
    """Company administering the publisher's share of works."""

    __tablename__ = "publishing_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pro_affiliation: Mapped[str] = mapped_column(String(50), nullable=True)
    ipi_number: Mapped[str] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    shares: Mapped[List["PublishingEntityShare"]] = relationship(
        "PublishingEntityShare",
        back_populates="publishing_entity",
    )

    def __repr__(self) -> str:
        return f"<PublishingEntity {self.id} name={self.name}>"
