"""
Contract document assembly.

get_document() walks an ordered list of strategies and returns the first
result; a strategy returns None to pass to the next one:

1. StoredSignedPdf   - signed bytes already cached on the contract
2. ProviderSignedPdf - signed contract with a doc ID: fetch from the provider,
                       check it parses as a PDF, cache it (only once)
3. PreviewPdf        - render an unsigned preview from the work data

Provider failures in tier 2 are logged and fall through. A failure in the
last tier is a RenderError.
"""
from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

from pypdf import PdfReader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.collaborator_share import CollaboratorShare
from app.models.contract import Contract, ContractType, SignatureStatus
from app.models.publishing_entity_share import PublishingEntityShare
from app.models.work import Work
from app.services.contract_templates import build_contract_data, render_contract_text
from app.services.contract_types import contract_type_label
from app.services.errors import NotFoundError, ProviderError, RenderError
from app.services.pdf_renderer import render_pdf
from app.services.signwell import SignWellClient, signwell_client

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class AssembledDocument:
    content: bytes
    filename: str
    signed: bool
    source: str  # "stored", "provider" or "preview"


def build_filename(contract_type: str, work_title: str, collaborator_name: str, signed: bool = False) -> str:
    """<type>_<work>_<collaborator>.pdf restricted to [A-Za-z0-9_.-]"""
    stem = f"{contract_type}_{work_title}_{collaborator_name}"
    stem = _UNSAFE_FILENAME_CHARS.sub("_", stem)
    prefix = "signed_" if signed else ""
    return f"{prefix}{stem}.pdf"


def is_pdf(content: bytes) -> bool:
    """True if pypdf can open the bytes and finds at least one page."""
    if not content:
        return False
    try:
        reader = PdfReader(io.BytesIO(content))
        return len(reader.pages) > 0
    except Exception as e:
        # pypdf raises assorted error types on corrupt trailers and xref tables
        logger.warning(f"Fetched document is not a valid PDF: {type(e).__name__}: {e}")
        return False


async def load_contract(db: AsyncSession, contract_id: UUID) -> Contract:
    """Load a contract with its work, share and collaborator."""
    result = await db.execute(
        select(Contract)
        .options(
            selectinload(Contract.work),
            selectinload(Contract.collaborator_share).selectinload(CollaboratorShare.collaborator),
        )
        .where(Contract.id == contract_id)
    )
    contract = result.scalar_one_or_none()
    if contract is None:
        raise NotFoundError(f"Contract {contract_id} not found")
    return contract


async def load_entity_shares(db: AsyncSession, work_id: UUID) -> List[PublishingEntityShare]:
    result = await db.execute(
        select(PublishingEntityShare)
        .options(selectinload(PublishingEntityShare.publishing_entity))
        .where(PublishingEntityShare.work_id == work_id)
        .order_by(PublishingEntityShare.created_at)
    )
    return list(result.scalars().all())


def _contract_filename(contract: Contract, signed: bool) -> str:
    return build_filename(
        ContractType(contract.template_type).value,
        contract.work.title,
        contract.collaborator_share.collaborator.full_name,
        signed=signed,
    )


class StoredSignedPdf:
    name = "stored"

    async def resolve(self, db: AsyncSession, contract: Contract) -> Optional[AssembledDocument]:
        if not contract.signed_pdf_data:
            return None
        return AssembledDocument(
            content=contract.signed_pdf_data,
            filename=_contract_filename(contract, signed=True),
            signed=True,
            source=self.name,
        )


class ProviderSignedPdf:
    name = "provider"

    def __init__(self, provider: SignWellClient):
        self.provider = provider

    async def resolve(self, db: AsyncSession, contract: Contract) -> Optional[AssembledDocument]:
        if contract.esignature_status != SignatureStatus.SIGNED or not contract.esignature_doc_id:
            return None

        try:
            content = await self.provider.fetch_completed_pdf(contract.esignature_doc_id)
        except ProviderError as e:
            logger.warning(f"Could not fetch signed PDF for contract {contract.id}: {e.message}")
            return None

        if not is_pdf(content):
            logger.warning(f"Provider returned an invalid PDF for contract {contract.id}")
            return None

        contract.signed_pdf_data = content
        await db.flush()
        logger.info(f"Cached signed PDF for contract {contract.id} ({len(content)} bytes)")

        return AssembledDocument(
            content=content,
            filename=_contract_filename(contract, signed=True),
            signed=True,
            source=self.name,
        )


class PreviewRenderer:
    """Work data -> template text -> PDF bytes."""

    def render(
        self,
        contract_type: ContractType,
        work: Work,
        share: CollaboratorShare,
        entity_shares: Sequence[PublishingEntityShare],
    ) -> bytes:
        data = build_contract_data(contract_type, work, share, entity_shares)
        text = render_contract_text(contract_type, data)
        return render_pdf(text, title=f"{contract_type_label(contract_type)} - {work.title}")


class PreviewPdf:
    name = "preview"

    def __init__(self, renderer: PreviewRenderer):
        self.renderer = renderer

    async def resolve(self, db: AsyncSession, contract: Contract) -> Optional[AssembledDocument]:
        entity_shares = await load_entity_shares(db, contract.work_id)
        content = self.renderer.render(
            ContractType(contract.template_type),
            contract.work,
            contract.collaborator_share,
            entity_shares,
        )
        return AssembledDocument(
            content=content,
            filename=_contract_filename(contract, signed=False),
            signed=False,
            source=self.name,
        )


class DocumentAssembler:
    """
    Produces contract PDFs.

    Stateless apart from its collaborators; the session is passed through.
    """

    def __init__(
        self,
        provider: SignWellClient | None = None,
        renderer: PreviewRenderer | None = None,
    ):
        self.provider = provider or signwell_client
        self.renderer = renderer or PreviewRenderer()
        self.strategies = [
            StoredSignedPdf(),
            ProviderSignedPdf(self.provider),
            PreviewPdf(self.renderer),
        ]

    async def get_document(self, db: AsyncSession, contract_id: UUID) -> AssembledDocument:
        """
        Resolve the bytes for a contract download.

        Raises:
            NotFoundError: contract does not exist
            RenderError: no stored or fetched document and rendering failed
        """
        contract = await load_contract(db, contract_id)
        for strategy in self.strategies:
            document = await strategy.resolve(db, contract)
            if document is not None:
                logger.debug(f"Contract {contract_id} document resolved via {strategy.name}")
                return document
        raise RenderError(f"No document could be produced for contract {contract_id}")

    async def render_preview(
        self,
        db: AsyncSession,
        work: Work,
        share: CollaboratorShare,
        contract_type: ContractType,
    ) -> bytes:
        """Render the unsigned document for a share (used when sending)."""
        entity_shares = await load_entity_shares(db, work.id)
        return self.renderer.render(contract_type, work, share, entity_shares)


# Default assembler instance
document_assembler = DocumentAssembler(provider=signwell_client)
