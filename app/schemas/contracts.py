"""Schemas for contracts and their signature status."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.contract import ContractType


class ContractCreate(BaseModel):
    """Generate and send a contract for one collaborator share."""
    collaborator_share_id: UUID = Field(..., alias="collaboratorShareId")
    contract_type: str = Field(..., alias="contractType")

    class Config:
        populate_by_name = True

    @field_validator('contract_type')
    @classmethod
    def validate_contract_type(cls, v):
        allowed = [t.value for t in ContractType]
        if v not in allowed:
            raise ValueError(f"contract_type must be one of {allowed}")
        return v


class ContractResponse(BaseModel):
    """Contract metadata (never includes the PDF bytes)."""
    id: UUID
    work_id: UUID
    collaborator_share_id: UUID
    template_type: str
    esignature_status: str
    esignature_doc_id: Optional[str] = None
    signer_email: Optional[str] = None
    signed_at: Optional[datetime] = None
    has_signed_pdf: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SignerResponse(BaseModel):
    email: str
    name: str
    status: str
    signed_at: Optional[datetime] = Field(None, alias="signedAt")

    class Config:
        populate_by_name = True


class ContractStatusResponse(BaseModel):
    status: str
    signed_at: Optional[datetime] = Field(None, alias="signedAt")
    source: str
    signers: Optional[list[SignerResponse]] = None
    warning: Optional[str] = None

    class Config:
        populate_by_name = True
