"""
Split history journal.

JOURNAL CONVENTION:
- One entry per successful ledger write (split change, label share, lock)
- Entries are append-only: never updated, never deleted by the ledger
- previous_values / new_values hold fractions as strings keyed by the row
  they apply to (collaborator share ID, publishing entity ID, or a field name)
"""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String, DateTime, ForeignKey, JSON
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base


class SplitType(str, Enum):
    """Kind of change recorded in the journal."""
    PUBLISHING = "publishing"                    # Collaborator writer's share
    MASTER = "master"                            # Collaborator master ownership
    PUBLISHING_ENTITIES = "publishing_entities"  # Publisher's share set
    LABEL_SHARE = "label_share"                  # Work.label_master_share
    LOCK = "lock"                                # Facet lock


class SplitHistory(Base):
    """Immutable record of a past allocation."""

    __tablename__ = "split_history"

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

    split_type: Mapped[str] = mapped_column(
        SAEnum(SplitType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    previous_values: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    new_values: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    changed_by: Mapped[str] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SplitHistory {self.id} work={self.work_id} type={self.split_type}>"
