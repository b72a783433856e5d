"""Schemas for work splits. Percentages are 0-100 at the API boundary."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def fraction_to_percent(value: Optional[Decimal]) -> Optional[float]:
    if value is None:
        return None
    return float(Decimal(str(value)) * 100)


class EntityShareInput(BaseModel):
    """One publishing entity's slice of the publisher's share."""
    publishing_entity_id: UUID = Field(..., alias="publishingEntityId")
    ownership_percentage: Decimal = Field(..., alias="ownershipPercentage", description="0-100")

    class Config:
        populate_by_name = True


class PublishingEntitiesRequest(BaseModel):
    entities: list[EntityShareInput] = Field(default_factory=list)


class ShareSplitInput(BaseModel):
    """New ownership for one collaborator share."""
    collaborator_share_id: UUID = Field(..., alias="collaboratorShareId")
    percentage: Decimal = Field(..., description="0-100")

    class Config:
        populate_by_name = True


class ShareSplitsRequest(BaseModel):
    splits: list[ShareSplitInput] = Field(default_factory=list)


class LabelShareRequest(BaseModel):
    label_master_share: Decimal = Field(..., alias="labelMasterShare", description="0-100")

    class Config:
        populate_by_name = True


class LockRequest(BaseModel):
    facet: str = Field(..., description="'publishing' or 'master'")

    @field_validator('facet')
    @classmethod
    def validate_facet(cls, v):
        if v not in ['publishing', 'master']:
            raise ValueError("facet must be 'publishing' or 'master'")
        return v


class CollaboratorShareResponse(BaseModel):
    id: UUID
    collaborator_id: UUID
    collaborator_name: str
    role_in_song: str
    publishing_ownership: Optional[float] = None
    master_ownership: Optional[float] = None


class EntityShareResponse(BaseModel):
    id: UUID
    publishing_entity_id: UUID
    name: str
    is_internal: bool
    ownership_percentage: float


class WorkSplitsResponse(BaseModel):
    """Ledger read model for a work."""
    work_id: UUID
    title: str
    publishing_locked: bool
    publishing_locked_at: Optional[datetime] = None
    master_locked: bool
    master_locked_at: Optional[datetime] = None
    label_master_share: float
    writer_total: float
    publisher_total: float
    master_total: float
    collaborator_shares: list[CollaboratorShareResponse] = Field(default_factory=list)
    publishing_entities: list[EntityShareResponse] = Field(default_factory=list)


class LockResponse(BaseModel):
    work_id: UUID
    facet: str
    locked: bool
    locked_at: Optional[datetime] = None


class RequiredContractsItem(BaseModel):
    collaborator_share_id: UUID
    collaborator_name: str
    role_in_song: str
    contract_types: list[str]


class RequiredContractsResponse(BaseModel):
    work_id: UUID
    shares: list[RequiredContractsItem]


class SpotifyTrackResponse(BaseModel):
    work_id: UUID
    isrc: str
    track: Optional[dict] = None
