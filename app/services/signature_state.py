"""
Contract signature lifecycle.

States: pending, signed, declined.

Transitions:
- send       -> pending, new esignature_doc_id, signed_at cleared
- completed  -> signed, signed_at = event time (else now)
- declined   -> declined, signed_at untouched
- canceled   -> pending, esignature_doc_id cleared

Cancellation is applied whatever the current state, including over signed:
deliveries are unordered and the last cancel wins. Re-applying a state the
contract is already in is a no-op (no write, no notification).

Sources of transitions are provider webhooks (apply_event) and on-demand
status polls (get_status). Polling never raises on provider failure; it
falls back to the stored status with a warning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.models.collaborator_share import CollaboratorShare
from app.models.contract import Contract, ContractType, SignatureStatus
from app.models.work import SplitFacet
from app.services.contract_types import contract_type_label, resolve_share
from app.services.document_assembler import DocumentAssembler, document_assembler, load_contract
from app.services.email_service import send_contract_signed_email
from app.services.errors import NotFoundError, ProviderError, ValidationError
from app.services.signature_events import EventKind, SignatureEvent
from app.services.signwell import SignerStatus, SignWellClient, signwell_client

logger = logging.getLogger(__name__)

# Provider poll status -> event kind driving the same transitions as webhooks
_POLL_EVENTS = {
    "signed": EventKind.COMPLETED,
    "declined": EventKind.DECLINED,
    "canceled": EventKind.CANCELED,
}


@dataclass
class SignedNotice:
    contract_id: UUID
    contract_title: str
    work_title: str
    collaborator_name: str
    signer_email: Optional[str]
    signed_at: Optional[datetime]


@dataclass
class Transition:
    """Outcome of applying an event to a contract."""
    contract_id: UUID
    previous_status: SignatureStatus
    status: SignatureStatus
    changed: bool
    notice: Optional[SignedNotice] = None


@dataclass
class StatusReport:
    status: SignatureStatus
    signed_at: Optional[datetime]
    source: str  # "local" or "provider"
    signers: Optional[List[SignerStatus]] = None
    warning: Optional[str] = None
    transition: Optional[Transition] = field(default=None, repr=False)


class EmailNotifier:
    """Sends the signed-contract notification through Resend."""

    async def contract_signed(self, notice: SignedNotice) -> None:
        await send_contract_signed_email(
            contract_title=notice.contract_title,
            work_title=notice.work_title,
            collaborator_name=notice.collaborator_name,
            signer_email=notice.signer_email,
            signed_at=notice.signed_at,
            contract_id=str(notice.contract_id),
        )


def _required_facet(contract_type: ContractType) -> SplitFacet:
    if contract_type == ContractType.SONGWRITER_PUBLISHING:
        return SplitFacet.PUBLISHING
    return SplitFacet.MASTER


class SignatureStateMachine:
    """
    Applies send, webhook and poll inputs to contract signature state.

    This service is stateless and testable. All database operations
    are passed through the session parameter; callers commit.
    """

    def __init__(
        self,
        provider: SignWellClient | None = None,
        notifier: EmailNotifier | None = None,
        assembler: DocumentAssembler | None = None,
    ):
        self.provider = provider or signwell_client
        self.notifier = notifier or EmailNotifier()
        self.assembler = assembler or document_assembler

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------
    def _signed_notice(self, contract: Contract) -> SignedNotice:
        return SignedNotice(
            contract_id=contract.id,
            contract_title=contract_type_label(contract.template_type),
            work_title=contract.work.title,
            collaborator_name=contract.collaborator_share.collaborator.full_name,
            signer_email=contract.signer_email,
            signed_at=contract.signed_at,
        )

    def transition(
        self,
        contract: Contract,
        kind: EventKind,
        timestamp: Optional[datetime] = None,
    ) -> Transition:
        """
        Apply one event kind to a loaded contract (no flush).

        Contract must have work and collaborator_share.collaborator loaded
        so a signed notice can be built.
        """
        previous = SignatureStatus(contract.esignature_status)
        result = Transition(contract.id, previous, previous, changed=False)

        if kind == EventKind.COMPLETED:
            if previous == SignatureStatus.SIGNED:
                return result
            contract.esignature_status = SignatureStatus.SIGNED
            contract.signed_at = timestamp or datetime.utcnow()
            result.status = SignatureStatus.SIGNED
            result.changed = True
            result.notice = self._signed_notice(contract)

        elif kind == EventKind.DECLINED:
            if previous == SignatureStatus.DECLINED:
                return result
            contract.esignature_status = SignatureStatus.DECLINED
            result.status = SignatureStatus.DECLINED
            result.changed = True

        elif kind == EventKind.CANCELED:
            if previous == SignatureStatus.PENDING and contract.esignature_doc_id is None:
                return result
            if previous == SignatureStatus.SIGNED:
                logger.warning(f"Cancellation received for signed contract {contract.id}, resetting to pending")
            contract.esignature_status = SignatureStatus.PENDING
            contract.esignature_doc_id = None
            result.status = SignatureStatus.PENDING
            result.changed = True

        if result.changed:
            logger.info(f"Contract {contract.id}: {previous.value} -> {result.status.value} ({kind.value})")
        return result

    async def apply_event(self, db: AsyncSession, event: SignatureEvent) -> Optional[Transition]:
        """
        Apply a parsed webhook event.

        Returns None when the event is ignored (unknown kind, no document ID,
        or no local contract for the document).
        """
        if event.kind == EventKind.UNKNOWN:
            logger.info(f"Unhandled webhook event type: {event.event_type}")
            return None
        if not event.document_id:
            logger.warning(f"Webhook event {event.event_type} without a document ID")
            return None

        result = await db.execute(
            select(Contract)
            .options(
                selectinload(Contract.work),
                selectinload(Contract.collaborator_share).selectinload(CollaboratorShare.collaborator),
            )
            .where(Contract.esignature_doc_id == event.document_id)
            .with_for_update()
        )
        contract = result.scalar_one_or_none()
        if contract is None:
            # May belong to another system sharing the provider account
            logger.warning(f"Contract not found for document ID: {event.document_id}")
            return None

        transition = self.transition(contract, event.kind, event.timestamp)
        if transition.changed:
            await db.flush()
        return transition

    async def notify(self, transition: Optional[Transition]) -> None:
        """Run side effects of a committed transition (signed notification)."""
        if transition is None or transition.notice is None:
            return
        await self.notifier.contract_signed(transition.notice)

    # ------------------------------------------------------------------
    # polling
    # ------------------------------------------------------------------
    async def get_status(self, db: AsyncSession, contract_id: UUID) -> StatusReport:
        """
        Current signature status of a contract.

        Provider problems never raise: the stored status is returned with a
        warning instead.

        Raises:
            NotFoundError: contract does not exist
        """
        contract = await load_contract(db, contract_id)

        def local(warning: Optional[str] = None) -> StatusReport:
            return StatusReport(
                status=SignatureStatus(contract.esignature_status),
                signed_at=contract.signed_at,
                source="local",
                warning=warning,
            )

        if not contract.esignature_doc_id:
            return local()
        if not self.provider.configured:
            return local("E-signature provider not configured")

        try:
            provider_status = await self.provider.get_status(contract.esignature_doc_id)
        except ProviderError as e:
            logger.warning(f"Status poll failed for contract {contract_id}: {e.message}")
            return local(f"Provider unavailable: {e.message}")

        kind = _POLL_EVENTS.get(provider_status.status)
        transition = None
        if kind is not None:
            transition = self.transition(contract, kind, provider_status.signed_at)
        elif contract.esignature_status != SignatureStatus.PENDING:
            # Provider still waiting on signers
            previous = SignatureStatus(contract.esignature_status)
            contract.esignature_status = SignatureStatus.PENDING
            transition = Transition(contract.id, previous, SignatureStatus.PENDING, changed=True)
            logger.info(f"Contract {contract.id}: {previous.value} -> pending (provider poll)")

        if transition is not None and transition.changed:
            await db.flush()

        return StatusReport(
            status=SignatureStatus(contract.esignature_status),
            signed_at=contract.signed_at,
            source="provider",
            signers=provider_status.signers,
            transition=transition,
        )

    # ------------------------------------------------------------------
    # sending
    # ------------------------------------------------------------------
    async def _dispatch(
        self,
        db: AsyncSession,
        share: CollaboratorShare,
        contract_type: ContractType,
    ) -> tuple[str, str]:
        """Render and send a document. Returns (document ID, signer email)."""
        collaborator = share.collaborator
        if not collaborator.email:
            raise ValidationError(f"Collaborator {collaborator.full_name} has no email address")

        pdf_bytes = await self.assembler.render_preview(db, share.work, share, contract_type)
        title = f"{contract_type_label(contract_type)} - {share.work.title} - {collaborator.full_name}"

        countersigner_email = settings.PUBLISHER_MANAGER_EMAIL or None
        countersigner_name = settings.PUBLISHER_MANAGER_NAME or None
        document_id = await self.provider.send_document(
            pdf_bytes=pdf_bytes,
            signer_email=collaborator.email,
            signer_name=collaborator.full_name,
            title=title,
            countersigner_email=countersigner_email,
            countersigner_name=countersigner_name,
        )
        return document_id, collaborator.email

    async def _get_share(self, db: AsyncSession, share_id: UUID) -> CollaboratorShare:
        result = await db.execute(
            select(CollaboratorShare)
            .options(
                selectinload(CollaboratorShare.work),
                selectinload(CollaboratorShare.collaborator),
            )
            .where(CollaboratorShare.id == share_id)
        )
        share = result.scalar_one_or_none()
        if share is None:
            raise NotFoundError(f"Collaborator share {share_id} not found")
        return share

    async def create_contract(
        self,
        db: AsyncSession,
        collaborator_share_id: UUID,
        contract_type: ContractType,
    ) -> Contract:
        """
        Generate, send and record a contract for a collaborator share.

        The contract row is only created after the provider accepted the
        document.

        Raises:
            NotFoundError: share does not exist
            ValidationError: type not required for this share, facet not
                locked, contract already exists, or no signer email
            ProviderError: the provider rejected or could not receive it
            RenderError: the document could not be rendered
        """
        contract_type = ContractType(contract_type)
        share = await self._get_share(db, collaborator_share_id)
        work = share.work

        if contract_type not in resolve_share(share):
            raise ValidationError(
                f"{contract_type_label(contract_type)} is not required for a "
                f"{share.role_in_song} share with these ownership values"
            )

        facet = _required_facet(contract_type)
        if not work.is_locked(facet):
            raise ValidationError(f"Work {facet.value} splits must be locked before generating contracts")

        existing = await db.execute(
            select(Contract.id).where(
                Contract.collaborator_share_id == share.id,
                Contract.template_type == contract_type,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ValidationError("Contract already exists for this share, resend it instead")

        document_id, signer_email = await self._dispatch(db, share, contract_type)

        contract = Contract(
            work_id=work.id,
            collaborator_share_id=share.id,
            template_type=contract_type,
            esignature_status=SignatureStatus.PENDING,
            esignature_doc_id=document_id,
            signer_email=signer_email,
        )
        db.add(contract)
        await db.flush()

        logger.info(f"Created contract {contract.id} ({contract_type.value}) for share {share.id}")
        return contract

    async def send(self, db: AsyncSession, contract_id: UUID) -> Contract:
        """
        Dispatch an existing contract again.

        Raises:
            NotFoundError: contract does not exist
            ValidationError: contract already signed, internal type, or no signer email
            ProviderError: dispatch failed (contract left unchanged)
        """
        contract = await load_contract(db, contract_id)
        if contract.esignature_status == SignatureStatus.SIGNED:
            raise ValidationError("Contract is already signed")

        contract_type = ContractType(contract.template_type)
        if contract_type == ContractType.LABEL_RECORD:
            raise ValidationError("Label records are internal and are not sent for signature")

        share = await self._get_share(db, contract.collaborator_share_id)
        document_id, signer_email = await self._dispatch(db, share, contract_type)

        contract.esignature_doc_id = document_id
        contract.esignature_status = SignatureStatus.PENDING
        contract.signer_email = signer_email
        contract.signed_at = None
        contract.signed_pdf_data = None
        await db.flush()

        logger.info(f"Sent contract {contract.id} (document {document_id})")
        return contract


# Default state machine instance
signature_machine = SignatureStateMachine(
    provider=signwell_client,
    assembler=document_assembler,
)
