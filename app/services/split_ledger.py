"""
Split ledger service.

Business rules:
1. Publishing is split 50/50:
   - publisher's share = sum(publishing entity shares) = 0.50
   - writer's share    = sum(collaborator publishing_ownership) = 0.50
   Each half is validated when it is written; the halves are never
   reconciled against each other.

2. Tolerance: a total is valid if abs(total - expected) <= 0.0001.

3. Locks:
   - publishing lock freezes entity shares and collaborator publishing_ownership
   - master lock freezes collaborator master_ownership and label_master_share
   - locking is idempotent and there is no unlock

4. Every successful write appends a SplitHistory entry in the same transaction.

The work row is read with SELECT ... FOR UPDATE before any check, so a lock
and a concurrent split write are serialized on the same row.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.work import Work, SplitFacet
from app.models.collaborator_share import (
    CollaboratorShare,
    CollaboratorRole,
    PUBLISHING_ELIGIBLE_ROLES,
    MASTER_ELIGIBLE_ROLES,
)
from app.models.publishing_entity import PublishingEntity
from app.models.publishing_entity_share import PublishingEntityShare
from app.models.split_history import SplitHistory, SplitType
from app.services.errors import LockedError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


PUBLISHER_SHARE = Decimal("0.50")
WRITER_SHARE = Decimal("0.50")
FULL_SHARE = Decimal("1")
TOLERANCE = Decimal("0.0001")
_QUANTUM = Decimal("0.0001")

Fraction = Union[Decimal, float, int, str]


def as_decimal(value: Fraction) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_fraction(value: Fraction) -> Decimal:
    """Normalize a share to a 4-place Decimal fraction (the stored precision)."""
    return as_decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def percent_to_fraction(value: Fraction) -> Decimal:
    """
    Convert a 0-100 percentage from the API boundary to a 0-1 fraction.

    The result is not rounded; sums are checked at full precision and
    values are rounded to the stored precision only when written.
    """
    return as_decimal(value) / 100


def within_tolerance(total: Decimal, expected: Decimal) -> bool:
    return abs(total - expected) <= TOLERANCE


@dataclass
class EntityShareEntry:
    """Requested publisher's-share slice for one publishing entity."""
    publishing_entity_id: UUID
    percentage: Decimal


@dataclass
class ShareSplitEntry:
    """Requested ownership for one collaborator share row."""
    collaborator_share_id: UUID
    percentage: Decimal


@dataclass
class WorkSplits:
    """Read model of a work's ledger state."""
    work: Work
    collaborator_shares: List[CollaboratorShare] = field(default_factory=list)
    publishing_entity_shares: List[PublishingEntityShare] = field(default_factory=list)

    @property
    def writer_total(self) -> Decimal:
        return sum(
            (s.publishing_ownership or Decimal("0") for s in self.collaborator_shares),
            Decimal("0"),
        )

    @property
    def publisher_total(self) -> Decimal:
        return sum(
            (s.ownership_percentage for s in self.publishing_entity_shares),
            Decimal("0"),
        )

    @property
    def master_total(self) -> Decimal:
        return sum(
            (s.master_ownership or Decimal("0") for s in self.collaborator_shares),
            Decimal("0"),
        )


def _check_range(value: Decimal, label: str) -> None:
    if value < 0 or value > FULL_SHARE:
        raise ValidationError(f"{label} must be between 0% and 100%, got {value * 100}%")


def _find_duplicates(ids: Iterable[UUID]) -> List[UUID]:
    seen = set()
    duplicates = []
    for item in ids:
        if item in seen and item not in duplicates:
            duplicates.append(item)
        seen.add(item)
    return duplicates


def _snapshot(values: Dict) -> Dict[str, Optional[str]]:
    """JSON-safe copy of share values for the history journal."""
    return {str(k): (str(v) if v is not None else None) for k, v in values.items()}


class SplitLedger:
    """
    Service validating and storing ownership splits.

    This service is stateless. All database operations are passed through
    the session parameter; callers commit.
    """

    async def _get_work_for_update(self, db: AsyncSession, work_id: UUID) -> Work:
        result = await db.execute(
            select(Work).where(Work.id == work_id).with_for_update()
        )
        work = result.scalar_one_or_none()
        if work is None:
            raise NotFoundError(f"Work {work_id} not found")
        return work

    async def _get_collaborator_shares(
        self,
        db: AsyncSession,
        work_id: UUID,
    ) -> List[CollaboratorShare]:
        result = await db.execute(
            select(CollaboratorShare)
            .options(selectinload(CollaboratorShare.collaborator))
            .where(CollaboratorShare.work_id == work_id)
            .order_by(CollaboratorShare.created_at)
        )
        return list(result.scalars().all())

    async def _get_entity_shares(
        self,
        db: AsyncSession,
        work_id: UUID,
    ) -> List[PublishingEntityShare]:
        result = await db.execute(
            select(PublishingEntityShare)
            .options(selectinload(PublishingEntityShare.publishing_entity))
            .where(PublishingEntityShare.work_id == work_id)
            .order_by(PublishingEntityShare.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    def _journal(
        self,
        db: AsyncSession,
        work_id: UUID,
        split_type: SplitType,
        previous_values: Dict,
        new_values: Dict,
        changed_by: Optional[str],
    ) -> None:
        db.add(SplitHistory(
            work_id=work_id,
            split_type=split_type,
            previous_values=_snapshot(previous_values),
            new_values=_snapshot(new_values),
            changed_by=changed_by,
        ))

    async def get_splits(self, db: AsyncSession, work_id: UUID) -> WorkSplits:
        """
        Load a work with its collaborator and publishing entity shares.

        Raises:
            NotFoundError: If the work does not exist
        """
        result = await db.execute(select(Work).where(Work.id == work_id))
        work = result.scalar_one_or_none()
        if work is None:
            raise NotFoundError(f"Work {work_id} not found")

        return WorkSplits(
            work=work,
            collaborator_shares=await self._get_collaborator_shares(db, work_id),
            publishing_entity_shares=await self._get_entity_shares(db, work_id),
        )

    async def set_publishing_entities(
        self,
        db: AsyncSession,
        work_id: UUID,
        entries: Sequence[EntityShareEntry],
        changed_by: Optional[str] = None,
    ) -> List[PublishingEntityShare]:
        """
        Replace the publisher's share set of a work.

        The whole set is deleted and re-inserted; it must total 0.50.

        Raises:
            NotFoundError: If the work does not exist
            LockedError: If publishing is locked
            ValidationError: On bad percentages, duplicates, unknown entities
                or a total outside tolerance
        """
        work = await self._get_work_for_update(db, work_id)
        if work.publishing_locked:
            raise LockedError("Publishing splits are locked and cannot be modified")

        entries = [
            EntityShareEntry(e.publishing_entity_id, as_decimal(e.percentage))
            for e in entries
        ]
        for entry in entries:
            _check_range(entry.percentage, "Publishing entity percentage")

        duplicates = _find_duplicates(e.publishing_entity_id for e in entries)
        if duplicates:
            raise ValidationError(
                f"Duplicate publishing entities found: {', '.join(str(d) for d in duplicates)}"
            )

        total = sum((e.percentage for e in entries), Decimal("0"))
        if not within_tolerance(total, PUBLISHER_SHARE):
            raise ValidationError(
                f"Publisher's share must total exactly 50%. Current total: {total * 100:.2f}%",
                total=total,
            )

        if entries:
            ids = [e.publishing_entity_id for e in entries]
            result = await db.execute(
                select(PublishingEntity.id).where(PublishingEntity.id.in_(ids))
            )
            known = set(result.scalars().all())
            unknown = [str(i) for i in ids if i not in known]
            if unknown:
                raise ValidationError(f"Unknown publishing entities: {', '.join(unknown)}")

        previous = await self._get_entity_shares(db, work_id)
        previous_values = {s.publishing_entity_id: s.ownership_percentage for s in previous}

        # Replace the whole set
        await db.execute(
            delete(PublishingEntityShare).where(PublishingEntityShare.work_id == work_id)
        )
        for entry in entries:
            db.add(PublishingEntityShare(
                work_id=work_id,
                publishing_entity_id=entry.publishing_entity_id,
                ownership_percentage=to_fraction(entry.percentage),
            ))

        self._journal(
            db,
            work_id,
            SplitType.PUBLISHING_ENTITIES,
            previous_values,
            {e.publishing_entity_id: to_fraction(e.percentage) for e in entries},
            changed_by,
        )
        await db.flush()

        logger.info(f"Publishing entities for work {work_id} set ({len(entries)} entities)")
        return await self._get_entity_shares(db, work_id)

    async def _apply_share_splits(
        self,
        db: AsyncSession,
        work: Work,
        splits: Sequence[ShareSplitEntry],
        attribute: str,
        eligible_roles,
        label: str,
    ) -> Tuple[List[CollaboratorShare], Dict[UUID, Decimal], Dict[UUID, Optional[Decimal]], Decimal]:
        """Validate collaborator share updates and return the resulting state (not yet applied)."""
        shares = await self._get_collaborator_shares(db, work.id)
        by_id = {s.id: s for s in shares}

        duplicates = _find_duplicates(s.collaborator_share_id for s in splits)
        if duplicates:
            raise ValidationError(
                f"Duplicate song collaborator entries found: {', '.join(str(d) for d in duplicates)}"
            )

        updates: Dict[UUID, Decimal] = {}
        for split in splits:
            share = by_id.get(split.collaborator_share_id)
            if share is None:
                raise ValidationError(
                    f"Collaborator share {split.collaborator_share_id} does not belong to work {work.id}"
                )
            value = as_decimal(split.percentage)
            _check_range(value, label)
            role = CollaboratorRole(share.role_in_song)
            if value > 0 and role not in eligible_roles:
                raise ValidationError(
                    f'Role "{role.value}" is not eligible for {label.lower()}'
                )
            updates[share.id] = value

        previous = {s.id: getattr(s, attribute) for s in shares}
        total = sum(
            (updates.get(s.id, getattr(s, attribute) or Decimal("0")) for s in shares),
            Decimal("0"),
        )
        return shares, updates, previous, total

    async def set_publishing_splits(
        self,
        db: AsyncSession,
        work_id: UUID,
        splits: Sequence[ShareSplitEntry],
        changed_by: Optional[str] = None,
    ) -> List[CollaboratorShare]:
        """
        Set collaborators' writer's share on a work.

        Shares not listed keep their value; the resulting total across the
        work must be 0.50.

        Raises:
            NotFoundError: If the work does not exist
            LockedError: If publishing is locked
            ValidationError: On foreign/duplicate shares, bad percentages,
                ineligible roles or a total outside tolerance
        """
        work = await self._get_work_for_update(db, work_id)
        if work.publishing_locked:
            raise LockedError("Publishing splits are locked and cannot be modified")

        shares, updates, previous, total = await self._apply_share_splits(
            db, work, splits, "publishing_ownership", PUBLISHING_ELIGIBLE_ROLES, "Publishing ownership",
        )
        if not within_tolerance(total, WRITER_SHARE):
            raise ValidationError(
                f"Writer's share must total exactly 50%. Current total: {total * 100:.2f}%",
                total=total,
            )

        for share in shares:
            if share.id in updates:
                share.publishing_ownership = to_fraction(updates[share.id])

        self._journal(
            db, work_id, SplitType.PUBLISHING, previous,
            {k: to_fraction(v) for k, v in updates.items()}, changed_by,
        )
        await db.flush()

        logger.info(f"Writer's share for work {work_id} updated ({len(updates)} rows)")
        return shares

    async def set_master_splits(
        self,
        db: AsyncSession,
        work_id: UUID,
        splits: Sequence[ShareSplitEntry],
        changed_by: Optional[str] = None,
    ) -> List[CollaboratorShare]:
        """
        Set collaborators' master ownership on a work.

        The label share is stored separately and is not added to the total.

        Raises:
            NotFoundError: If the work does not exist
            LockedError: If master is locked
            ValidationError: On foreign/duplicate shares, bad percentages,
                ineligible roles or a collaborator total above 100%
        """
        work = await self._get_work_for_update(db, work_id)
        if work.master_locked:
            raise LockedError("Master splits are locked and cannot be modified")

        shares, updates, previous, total = await self._apply_share_splits(
            db, work, splits, "master_ownership", MASTER_ELIGIBLE_ROLES, "Master ownership",
        )
        if total > FULL_SHARE + TOLERANCE:
            raise ValidationError(
                f"Master splits cannot exceed 100%. Current total: {total * 100:.2f}%",
                total=total,
            )

        for share in shares:
            if share.id in updates:
                share.master_ownership = to_fraction(updates[share.id])

        self._journal(
            db, work_id, SplitType.MASTER, previous,
            {k: to_fraction(v) for k, v in updates.items()}, changed_by,
        )
        await db.flush()

        logger.info(f"Master splits for work {work_id} updated ({len(updates)} rows)")
        return shares

    async def set_label_master_share(
        self,
        db: AsyncSession,
        work_id: UUID,
        share: Fraction,
        changed_by: Optional[str] = None,
    ) -> Work:
        """
        Set the label's fraction of master revenue.

        Raises:
            NotFoundError: If the work does not exist
            LockedError: If master is locked
            ValidationError: If the share is outside 0..1
        """
        work = await self._get_work_for_update(db, work_id)
        if work.master_locked:
            raise LockedError("Master splits are locked and cannot be modified")

        value = as_decimal(share)
        _check_range(value, "Label master share")
        value = to_fraction(value)

        previous = work.label_master_share
        work.label_master_share = value

        self._journal(
            db,
            work_id,
            SplitType.LABEL_SHARE,
            {"label_master_share": previous},
            {"label_master_share": value},
            changed_by,
        )
        await db.flush()
        return work

    async def lock(
        self,
        db: AsyncSession,
        work_id: UUID,
        facet: Union[SplitFacet, str],
        changed_by: Optional[str] = None,
    ) -> Work:
        """
        Lock a facet of a work's splits.

        Locking an already locked facet is a no-op. Publishing can only be
        locked once the publisher's share totals 50%.

        Raises:
            NotFoundError: If the work does not exist
            ValidationError: On an unknown facet or an invalid publisher's share
        """
        try:
            facet = SplitFacet(facet)
        except ValueError:
            raise ValidationError(f"Unknown facet '{facet}', expected 'publishing' or 'master'")

        work = await self._get_work_for_update(db, work_id)
        if work.is_locked(facet):
            return work

        now = datetime.utcnow()
        if facet == SplitFacet.PUBLISHING:
            entities = await self._get_entity_shares(db, work_id)
            total = sum((e.ownership_percentage for e in entities), Decimal("0"))
            if not within_tolerance(total, PUBLISHER_SHARE):
                raise ValidationError(
                    f"Cannot lock: publisher's share must total exactly 50%. "
                    f"Current total: {total * 100:.2f}%",
                    total=total,
                )
            work.publishing_locked = True
            work.publishing_locked_at = now
        else:
            work.master_locked = True
            work.master_locked_at = now

        self._journal(
            db,
            work_id,
            SplitType.LOCK,
            {f"{facet.value}_locked": False},
            {f"{facet.value}_locked": True},
            changed_by,
        )
        await db.flush()

        logger.info(f"Work {work_id} {facet.value} splits locked")
        return work


# Default ledger instance
split_ledger = SplitLedger()
