"""Contract model tracking e-signature state for a collaborator share."""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, LargeBinary, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.work import Work
    from app.models.collaborator_share import CollaboratorShare


class ContractType(str, Enum):
    """Legal document template a contract is generated from."""
    SONGWRITER_PUBLISHING = "songwriter_publishing"  # Publishing assignment
    DIGITAL_MASTER_ONLY = "digital_master_only"      # Master revenue share
    PRODUCER_AGREEMENT = "producer_agreement"
    LABEL_RECORD = "label_record"                    # Internal, never sent


class SignatureStatus(str, Enum):
    """
    Signature state of a contract.

    pending -> signed | declined
    any     -> pending (provider cancellation, doc ID cleared for resend)
    """
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"


class Contract(Base):
    """
    Contract sent to a collaborator for e-signature.

    Mutated only by signature state transitions and by caching the signed
    PDF once it has been retrieved from the provider.
    """

    __tablename__ = "contracts"

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
    collaborator_share_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("collaborator_shares.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    template_type: Mapped[str] = mapped_column(
        SAEnum(ContractType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    # E-signature tracking
    esignature_status: Mapped[str] = mapped_column(
        SAEnum(SignatureStatus, values_callable=lambda x: [e.value for e in x]),
        default=SignatureStatus.PENDING,
        nullable=False,
        index=True,
    )
    # Provider document ID, set once dispatched, cleared on cancellation
    esignature_doc_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    signer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Signed artifact cached after the first provider fetch
    signed_pdf_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

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
    work: Mapped["Work"] = relationship(
        "Work",
        back_populates="contracts",
    )
    collaborator_share: Mapped["CollaboratorShare"] = relationship(
        "CollaboratorShare",
    )

    __table_args__ = (
        UniqueConstraint("collaborator_share_id", "template_type", name="uq_contract_share_type"),
    )

    def __repr__(self) -> str:
        return f"<Contract {self.id} type={self.template_type} status={self.esignature_status}>"
