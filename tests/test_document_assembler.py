from __future__ import annotations

import io
from datetime import date, datetime

import pytest
from pypdf import PdfReader

from app.models import ContractType, SignatureStatus
from app.services import document_assembler
from app.services.contract_templates import build_contract_data, render_contract_text
from app.services.document_assembler import (
    DocumentAssembler,
    PreviewRenderer,
    build_filename,
    is_pdf,
    load_contract,
    load_entity_shares,
)
from app.services.errors import RenderError
from app.services.pdf_renderer import render_pdf

from factories import FakeProvider, create_contract, sample_pdf, seed_catalog


def _text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    return "\n".join(page.extract_text() for page in reader.pages)


def test_build_filename():
    assert build_filename("producer_agreement", "Northern Lights", "Cy Tran") == (
        "producer_agreement_Northern_Lights_Cy_Tran.pdf"
    )
    assert build_filename("songwriter_publishing", "Ça va / Remix", "Zoë O'Neil", signed=True) == (
        "signed_songwriter_publishing__a_va___Remix_Zo__O_Neil.pdf"
    )


def test_is_pdf_treats_any_reader_error_as_invalid(monkeypatch):
    def broken_reader(stream):
        raise KeyError("/Root")

    monkeypatch.setattr(document_assembler, "PdfReader", broken_reader)

    assert not is_pdf(b"%PDF-1.7 corrupt")


def test_is_pdf():
    assert is_pdf(sample_pdf())
    assert not is_pdf(b"")
    assert not is_pdf(b"<html>Document not ready</html>")


def test_render_pdf_rejects_empty_text():
    with pytest.raises(RenderError):
        render_pdf("   \n\n", title="empty")


def test_signed_pdf_is_fetched_once_then_served_from_storage(run_db):
    provider = FakeProvider(pdf=sample_pdf("EXECUTED PUBLISHING ASSIGNMENT"))
    assembler = DocumentAssembler(provider=provider)

    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            contract = await create_contract(
                session, catalog.writer, ContractType.SONGWRITER_PUBLISHING,
                status=SignatureStatus.SIGNED, doc_id="doc_1", signed_at=datetime(2026, 10, 1),
            )
            await session.commit()

        documents = []
        for _ in range(2):
            async with session_maker() as session:
                documents.append(await assembler.get_document(session, contract.id))
                await session.commit()
        return documents

    first, second = run_db(scenario)

    assert provider.fetch_calls == 1
    assert first.source == "provider"
    assert second.source == "stored"
    assert first.content == second.content
    assert first.signed and second.signed
    assert first.filename == "signed_songwriter_publishing_Northern_Lights_Ada_Lovelace.pdf"


@pytest.mark.parametrize("content", [
    b"<html>Document not ready</html>",
    b"%PDF-1.7\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\ntrailer\n<< /Root 9 0 R >>\n%%EOF",
    sample_pdf()[:60],
])
def test_invalid_provider_pdf_falls_through_to_preview(run_db, content):
    provider = FakeProvider(pdf=content)
    assembler = DocumentAssembler(provider=provider)

    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            contract = await create_contract(
                session, catalog.writer, ContractType.SONGWRITER_PUBLISHING,
                status=SignatureStatus.SIGNED, doc_id="doc_2",
            )
            await session.commit()

            document = await assembler.get_document(session, contract.id)
            stored = await load_contract(session, contract.id)
            return document, stored.signed_pdf_data

    document, cached = run_db(scenario)

    assert provider.fetch_calls == 1
    assert document.source == "preview"
    assert not document.signed
    assert document.filename == "songwriter_publishing_Northern_Lights_Ada_Lovelace.pdf"
    assert is_pdf(document.content)
    assert cached is None


def test_provider_failure_falls_through_to_preview(run_db):
    provider = FakeProvider(fail=True)
    assembler = DocumentAssembler(provider=provider)

    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            contract = await create_contract(
                session, catalog.producer, ContractType.PRODUCER_AGREEMENT,
                status=SignatureStatus.SIGNED, doc_id="doc_3",
            )
            await session.commit()
            return await assembler.get_document(session, contract.id)

    document = run_db(scenario)

    assert document.source == "preview"
    assert "PRODUCER AGREEMENT" in _text(document.content)


def test_unsigned_contract_never_hits_provider(run_db):
    provider = FakeProvider(pdf=sample_pdf())
    assembler = DocumentAssembler(provider=provider)

    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            contract = await create_contract(
                session, catalog.artist_master, ContractType.DIGITAL_MASTER_ONLY, doc_id="doc_4",
            )
            await session.commit()
            return await assembler.get_document(session, contract.id)

    document = run_db(scenario)

    assert provider.fetch_calls == 0
    assert document.source == "preview"
    assert document.filename == "digital_master_only_Northern_Lights_Ben_Okafor.pdf"


def test_publishing_assignment_lists_publishers_and_shares(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            await session.commit()

            share = await load_contract_share(session, catalog)
            entity_shares = await load_entity_shares(session, catalog.work.id)
            data = build_contract_data(
                ContractType.SONGWRITER_PUBLISHING, catalog.work, share, entity_shares,
                effective_date=date(2026, 10, 19),
            )
            text = render_contract_text(ContractType.SONGWRITER_PUBLISHING, data)
            pdf = PreviewRenderer().render(ContractType.SONGWRITER_PUBLISHING, catalog.work, share, entity_shares)
            return data, text, pdf

    data, text, pdf = run_db(scenario)

    assert data["publishing_share"] == "25.00"
    assert data["effective_date"] == "October 19, 2026"
    assert [p["name"] for p in data["publishers"]] == ["River and Ember Publishing"]
    assert "River and Ember Publishing" in text
    assert "25.00%" in text
    assert "[sig|req|recipient_2]" in text
    assert "PUBLISHING ASSIGNMENT AGREEMENT" in _text(pdf)


async def load_contract_share(session, catalog):
    contract = await create_contract(session, catalog.writer, ContractType.SONGWRITER_PUBLISHING)
    loaded = await load_contract(session, contract.id)
    return loaded.collaborator_share


def test_role_wording_in_master_agreement(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session)
            await session.commit()
            contract = await create_contract(session, catalog.artist_master, ContractType.DIGITAL_MASTER_ONLY)
            loaded = await load_contract(session, contract.id)
            data = build_contract_data(
                ContractType.DIGITAL_MASTER_ONLY, loaded.work, loaded.collaborator_share, [],
            )
            return data, render_contract_text(ContractType.DIGITAL_MASTER_ONLY, data)

    data, text = run_db(scenario)

    assert data["role_title"] == "Featured Artist"
    assert data["credit_wording"] == "Featuring Ben Okafor"
    assert data["master_share"] == "40.00"
    assert "40.00%" in text
