"""Seed data builders and fake collaborators shared by the tests."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.models import (
    Collaborator,
    CollaboratorRole,
    CollaboratorShare,
    Contract,
    ContractType,
    PublishingEntity,
    PublishingEntityShare,
    SignatureStatus,
    Work,
)
from app.services.errors import ProviderError
from app.services.pdf_renderer import render_pdf
from app.services.signwell import ProviderStatus, SignerStatus


async def create_work(session, title="Northern Lights", isrc_code="USRC17607839", **kwargs) -> Work:
    work = Work(title=title, isrc_code=isrc_code, **kwargs)
    session.add(work)
    await session.flush()
    return work


async def create_collaborator(session, first_name="Ada", last_name="Lovelace", email="ada@example.com", **kwargs) -> Collaborator:
    collaborator = Collaborator(first_name=first_name, last_name=last_name, email=email, **kwargs)
    session.add(collaborator)
    await session.flush()
    return collaborator


async def create_share(
    session,
    work: Work,
    collaborator: Collaborator,
    role: CollaboratorRole,
    publishing: Optional[str] = None,
    master: Optional[str] = None,
) -> CollaboratorShare:
    share = CollaboratorShare(
        work_id=work.id,
        collaborator_id=collaborator.id,
        role_in_song=role,
        publishing_ownership=Decimal(publishing) if publishing is not None else None,
        master_ownership=Decimal(master) if master is not None else None,
    )
    session.add(share)
    await session.flush()
    return share


async def create_entity(session, name="River and Ember Publishing", is_internal=True) -> PublishingEntity:
    entity = PublishingEntity(name=name, is_internal=is_internal)
    session.add(entity)
    await session.flush()
    return entity


async def create_entity_share(session, work: Work, entity: PublishingEntity, fraction: str) -> PublishingEntityShare:
    entity_share = PublishingEntityShare(
        work_id=work.id,
        publishing_entity_id=entity.id,
        ownership_percentage=Decimal(fraction),
    )
    session.add(entity_share)
    await session.flush()
    return entity_share


async def create_contract(
    session,
    share: CollaboratorShare,
    contract_type: ContractType,
    status: SignatureStatus = SignatureStatus.PENDING,
    doc_id: Optional[str] = None,
    signed_at: Optional[datetime] = None,
    signed_pdf: Optional[bytes] = None,
) -> Contract:
    contract = Contract(
        work_id=share.work_id,
        collaborator_share_id=share.id,
        template_type=contract_type,
        esignature_status=status,
        esignature_doc_id=doc_id,
        signer_email="ada@example.com",
        signed_at=signed_at,
        signed_pdf_data=signed_pdf,
    )
    session.add(contract)
    await session.flush()
    return contract


@dataclass
class Catalog:
    """A locked work with a writer, an artist, a producer and one publisher."""
    work: Work
    writer: CollaboratorShare
    artist_publishing: CollaboratorShare
    artist_master: CollaboratorShare
    producer: CollaboratorShare
    entity: PublishingEntity


async def seed_catalog(session, lock: bool = True) -> Catalog:
    work = await create_work(session)
    ada = await create_collaborator(session, "Ada", "Lovelace", "ada@example.com")
    ben = await create_collaborator(session, "Ben", "Okafor", "ben@example.com")
    cy = await create_collaborator(session, "Cy", "Tran", "cy@example.com")

    writer = await create_share(session, work, ada, CollaboratorRole.WRITER, publishing="0.2500")
    artist_publishing = await create_share(session, work, ben, CollaboratorRole.WRITER, publishing="0.2500")
    artist_master = await create_share(session, work, ben, CollaboratorRole.ARTIST, master="0.4000")
    producer = await create_share(session, work, cy, CollaboratorRole.PRODUCER, master="0.2000")

    entity = await create_entity(session)
    await create_entity_share(session, work, entity, "0.5000")

    if lock:
        work.publishing_locked = True
        work.master_locked = True
    await session.flush()
    return Catalog(work, writer, artist_publishing, artist_master, producer, entity)


def sample_pdf(title: str = "SIGNED AGREEMENT") -> bytes:
    return render_pdf(f"{title}\n\nSigned by all parties.", title=title)


class FakeProvider:
    """In-memory stand-in for the SignWell client."""

    def __init__(
        self,
        status: Optional[ProviderStatus] = None,
        pdf: Optional[bytes] = None,
        fail: bool = False,
        configured: bool = True,
    ):
        self.status = status or ProviderStatus(status="sent")
        self.pdf = pdf
        self.fail = fail
        self.configured = configured
        self.sent: List[dict] = []
        self.status_calls = 0
        self.fetch_calls = 0

    async def send_document(self, pdf_bytes, signer_email, signer_name, title,
                            countersigner_email=None, countersigner_name=None) -> str:
        if self.fail:
            raise ProviderError("SignWell returned 500")
        self.sent.append({
            "pdf_bytes": pdf_bytes,
            "signer_email": signer_email,
            "signer_name": signer_name,
            "title": title,
        })
        return f"doc_{len(self.sent)}"

    async def get_status(self, document_id: str) -> ProviderStatus:
        self.status_calls += 1
        if self.fail:
            raise ProviderError("SignWell unreachable: timed out")
        return self.status

    async def fetch_completed_pdf(self, document_id: str) -> bytes:
        self.fetch_calls += 1
        if self.fail:
            raise ProviderError("SignWell returned 404")
        return self.pdf


class FakeNotifier:
    def __init__(self):
        self.notices = []

    async def contract_signed(self, notice) -> None:
        self.notices.append(notice)


def signer(email="ada@example.com", name="Ada Lovelace", status="completed") -> SignerStatus:
    return SignerStatus(email=email, name=name, status=status)
