"""
Contracts Router

Generates contracts from locked splits, sends them for e-signature, reports
signature status and serves the contract PDF.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.config import settings
from app.models import Contract, ContractType, SignatureStatus
from app.schemas.contracts import (
    ContractCreate,
    ContractResponse,
    ContractStatusResponse,
    SignerResponse,
)
from app.services.document_assembler import document_assembler, load_contract
from app.services.signature_state import signature_machine

router = APIRouter(prefix="/contracts", tags=["contracts"])


async def verify_admin_token(x_admin_token: Annotated[str, Header()]) -> str:
    """Verify the admin token from header."""
    if x_admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
    return x_admin_token


def _contract_response(contract: Contract) -> ContractResponse:
    return ContractResponse(
        id=contract.id,
        work_id=contract.work_id,
        collaborator_share_id=contract.collaborator_share_id,
        template_type=ContractType(contract.template_type).value,
        esignature_status=SignatureStatus(contract.esignature_status).value,
        esignature_doc_id=contract.esignature_doc_id,
        signer_email=contract.signer_email,
        signed_at=contract.signed_at,
        has_signed_pdf=bool(contract.signed_pdf_data),
        created_at=contract.created_at,
        updated_at=contract.updated_at,
    )


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    request: ContractCreate,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """
    Generate a contract for a collaborator share and send it for signature.

    The contract type must be one the share requires and the matching facet
    of the work must be locked. Nothing is stored if sending fails.
    """
    contract = await signature_machine.create_contract(
        db, request.collaborator_share_id, ContractType(request.contract_type)
    )
    await db.commit()
    return _contract_response(contract)


@router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_contract(
    contract_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Send an unsigned contract for signature again."""
    contract = await signature_machine.send(db, contract_id)
    await db.commit()
    return _contract_response(contract)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Get a specific contract by ID."""
    contract = await load_contract(db, contract_id)
    return _contract_response(contract)


@router.get(
    "/{contract_id}/status",
    response_model=ContractStatusResponse,
    response_model_exclude_unset=True,
)
async def get_contract_status(
    contract_id: UUID,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """
    Get signature status, refreshed from the provider when possible.

    Falls back to the stored status (source=local) with a warning if the
    provider cannot be reached.
    """
    report = await signature_machine.get_status(db, contract_id)
    if report.transition is not None and report.transition.changed:
        await db.commit()
        background_tasks.add_task(signature_machine.notify, report.transition)

    data = {
        "status": report.status.value,
        "signed_at": report.signed_at,
        "source": report.source,
    }
    if report.signers is not None:
        data["signers"] = [
            SignerResponse(email=s.email, name=s.name, status=s.status, signed_at=s.signed_at)
            for s in report.signers
        ]
    if report.warning:
        data["warning"] = report.warning
    return ContractStatusResponse(**data)


@router.get("/{contract_id}/download")
async def download_contract(
    contract_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """
    Download the contract PDF.

    Signed bytes are served when available (stored or fetched from the
    provider), otherwise an unsigned preview is rendered.
    """
    document = await document_assembler.get_document(db, contract_id)
    if document.source == "provider":
        await db.commit()

    return Response(
        content=document.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
