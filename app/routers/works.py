"""
Works Router

Split ledger endpoints: publisher's share, writer's share, master splits,
label share and facet locks. Percentages are 0-100 in requests and
responses and stored as 0-1 fractions.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.config import settings
from app.models import CollaboratorRole, SplitFacet
from app.schemas.splits import (
    CollaboratorShareResponse,
    EntityShareResponse,
    LabelShareRequest,
    LockRequest,
    LockResponse,
    PublishingEntitiesRequest,
    RequiredContractsItem,
    RequiredContractsResponse,
    ShareSplitsRequest,
    SpotifyTrackResponse,
    WorkSplitsResponse,
    fraction_to_percent,
)
from app.services.contract_types import required_contracts
from app.services.errors import ValidationError
from app.services.split_ledger import (
    EntityShareEntry,
    ShareSplitEntry,
    WorkSplits,
    percent_to_fraction,
    split_ledger,
)
from app.services.spotify import spotify_service

router = APIRouter(prefix="/works", tags=["works"])


async def verify_admin_token(x_admin_token: Annotated[str, Header()]) -> str:
    """Verify the admin token from header."""
    if x_admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
    return x_admin_token


def _splits_response(splits: WorkSplits) -> WorkSplitsResponse:
    work = splits.work
    return WorkSplitsResponse(
        work_id=work.id,
        title=work.title,
        publishing_locked=work.publishing_locked,
        publishing_locked_at=work.publishing_locked_at,
        master_locked=work.master_locked,
        master_locked_at=work.master_locked_at,
        label_master_share=fraction_to_percent(work.label_master_share),
        writer_total=fraction_to_percent(splits.writer_total),
        publisher_total=fraction_to_percent(splits.publisher_total),
        master_total=fraction_to_percent(splits.master_total),
        collaborator_shares=[
            CollaboratorShareResponse(
                id=share.id,
                collaborator_id=share.collaborator_id,
                collaborator_name=share.collaborator.full_name,
                role_in_song=CollaboratorRole(share.role_in_song).value,
                publishing_ownership=fraction_to_percent(share.publishing_ownership),
                master_ownership=fraction_to_percent(share.master_ownership),
            )
            for share in splits.collaborator_shares
        ],
        publishing_entities=[
            EntityShareResponse(
                id=entity_share.id,
                publishing_entity_id=entity_share.publishing_entity_id,
                name=entity_share.publishing_entity.name,
                is_internal=entity_share.publishing_entity.is_internal,
                ownership_percentage=fraction_to_percent(entity_share.ownership_percentage),
            )
            for entity_share in splits.publishing_entity_shares
        ],
    )


async def _reload(db: AsyncSession, work_id: UUID) -> WorkSplitsResponse:
    return _splits_response(await split_ledger.get_splits(db, work_id))


@router.get("/{work_id}/splits", response_model=WorkSplitsResponse)
async def get_splits(
    work_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Get the full split state of a work."""
    return await _reload(db, work_id)


@router.post("/{work_id}/publishing-entities", response_model=WorkSplitsResponse)
async def set_publishing_entities(
    work_id: UUID,
    request: PublishingEntitiesRequest,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """
    Replace the publisher's share of a work.

    Entity percentages must total 50.
    """
    entries = [
        EntityShareEntry(e.publishing_entity_id, percent_to_fraction(e.ownership_percentage))
        for e in request.entities
    ]
    await split_ledger.set_publishing_entities(db, work_id, entries, changed_by="admin")
    await db.commit()
    return await _reload(db, work_id)


@router.post("/{work_id}/publishing-splits", response_model=WorkSplitsResponse)
async def set_publishing_splits(
    work_id: UUID,
    request: ShareSplitsRequest,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """
    Set collaborators' writer's share.

    Collaborator percentages must total 50.
    """
    splits = [
        ShareSplitEntry(s.collaborator_share_id, percent_to_fraction(s.percentage))
        for s in request.splits
    ]
    await split_ledger.set_publishing_splits(db, work_id, splits, changed_by="admin")
    await db.commit()
    return await _reload(db, work_id)


@router.post("/{work_id}/master-splits", response_model=WorkSplitsResponse)
async def set_master_splits(
    work_id: UUID,
    request: ShareSplitsRequest,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Set collaborators' master ownership (total at most 100)."""
    splits = [
        ShareSplitEntry(s.collaborator_share_id, percent_to_fraction(s.percentage))
        for s in request.splits
    ]
    await split_ledger.set_master_splits(db, work_id, splits, changed_by="admin")
    await db.commit()
    return await _reload(db, work_id)


@router.post("/{work_id}/label-share", response_model=WorkSplitsResponse)
async def set_label_share(
    work_id: UUID,
    request: LabelShareRequest,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Set the label's percentage of master revenue."""
    await split_ledger.set_label_master_share(
        db, work_id, percent_to_fraction(request.label_master_share), changed_by="admin"
    )
    await db.commit()
    return await _reload(db, work_id)


@router.post("/{work_id}/lock", response_model=LockResponse)
async def lock_work(
    work_id: UUID,
    request: LockRequest,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Lock the publishing or master splits of a work. There is no unlock."""
    work = await split_ledger.lock(db, work_id, request.facet, changed_by="admin")
    await db.commit()

    facet = SplitFacet(request.facet)
    locked_at = work.publishing_locked_at if facet == SplitFacet.PUBLISHING else work.master_locked_at
    return LockResponse(work_id=work.id, facet=facet.value, locked=True, locked_at=locked_at)


@router.get("/{work_id}/required-contracts", response_model=RequiredContractsResponse)
async def get_required_contracts(
    work_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Contract types each collaborator share on the work needs."""
    splits = await split_ledger.get_splits(db, work_id)
    required = required_contracts(splits.collaborator_shares)

    return RequiredContractsResponse(
        work_id=work_id,
        shares=[
            RequiredContractsItem(
                collaborator_share_id=share.id,
                collaborator_name=share.collaborator.full_name,
                role_in_song=CollaboratorRole(share.role_in_song).value,
                contract_types=sorted(t.value for t in required[share.id]),
            )
            for share in splits.collaborator_shares
        ],
    )


@router.get("/{work_id}/spotify-track", response_model=SpotifyTrackResponse)
async def get_spotify_track(
    work_id: UUID,
    db: AsyncSession = Depends(get_db),
    _token: str = Depends(verify_admin_token),
):
    """Look up the canonical Spotify track for the work's ISRC."""
    splits = await split_ledger.get_splits(db, work_id)
    isrc = splits.work.isrc_code
    if not isrc:
        raise ValidationError("Work has no ISRC code")

    track = await spotify_service.search_track_by_isrc(isrc)
    return SpotifyTrackResponse(work_id=work_id, isrc=isrc, track=track)
