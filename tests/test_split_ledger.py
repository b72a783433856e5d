from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.models import CollaboratorRole, SplitHistory, SplitType
from app.services.errors import LockedError, NotFoundError, ValidationError
from app.services.split_ledger import (
    EntityShareEntry,
    ShareSplitEntry,
    percent_to_fraction,
    split_ledger,
    to_fraction,
)

from factories import (
    create_collaborator,
    create_entity,
    create_share,
    create_work,
    seed_catalog,
)


def test_percent_to_fraction():
    assert percent_to_fraction(50) == Decimal("0.5000")
    assert percent_to_fraction("12.5") == Decimal("0.1250")
    assert to_fraction(0.33333) == Decimal("0.3333")


def test_publishing_entities_totaling_fifty_are_stored(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            internal = await create_entity(session, "River and Ember Publishing")
            external = await create_entity(session, "Blue Door Music", is_internal=False)
            await session.commit()

            await split_ledger.set_publishing_entities(session, work.id, [
                EntityShareEntry(internal.id, Decimal("0.30")),
                EntityShareEntry(external.id, Decimal("0.20")),
            ])
            await session.commit()

            splits = await split_ledger.get_splits(session, work.id)
            history = (await session.execute(select(SplitHistory))).scalars().all()
            return splits, history, internal.id, external.id

    splits, history, internal_id, external_id = run_db(scenario)

    stored = {s.publishing_entity_id: s.ownership_percentage for s in splits.publishing_entity_shares}
    assert stored == {internal_id: Decimal("0.3000"), external_id: Decimal("0.2000")}
    assert splits.publisher_total == Decimal("0.5000")
    assert len(history) == 1
    assert history[0].split_type == SplitType.PUBLISHING_ENTITIES


def test_equal_seven_way_publisher_split_is_accepted(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            entities = [await create_entity(session, f"Publisher {n}") for n in range(7)]
            await session.commit()

            await split_ledger.set_publishing_entities(session, work.id, [
                EntityShareEntry(entity.id, percent_to_fraction(Decimal(50) / 7))
                for entity in entities
            ])
            await session.commit()

            splits = await split_ledger.get_splits(session, work.id)
            return [s.ownership_percentage for s in splits.publishing_entity_shares]

    stored = run_db(scenario)

    assert stored == [Decimal("0.0714")] * 7


def test_equal_three_way_writer_split_is_accepted(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            shares = []
            for first_name in ("Ada", "Ben", "Cy"):
                collaborator = await create_collaborator(
                    session, first_name, "Writer", f"{first_name.lower()}@example.com",
                )
                shares.append(await create_share(session, work, collaborator, CollaboratorRole.WRITER))
            await session.commit()

            updated = await split_ledger.set_publishing_splits(session, work.id, [
                ShareSplitEntry(share.id, percent_to_fraction(Decimal(50) / 3)) for share in shares
            ])
            await session.commit()
            return [s.publishing_ownership for s in updated]

    assert run_db(scenario) == [Decimal("0.1667")] * 3


@pytest.mark.parametrize("first,second", [("0.25", "0.20"), ("0.30", "0.25")])
def test_publishing_entities_outside_fifty_are_rejected(run_db, first, second):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            a = await create_entity(session, "A Publishing")
            b = await create_entity(session, "B Publishing")
            await session.commit()

            with pytest.raises(ValidationError) as exc_info:
                await split_ledger.set_publishing_entities(session, work.id, [
                    EntityShareEntry(a.id, Decimal(first)),
                    EntityShareEntry(b.id, Decimal(second)),
                ])
            await session.rollback()

            splits = await split_ledger.get_splits(session, work.id)
            return exc_info.value, splits

    error, splits = run_db(scenario)

    assert error.total == Decimal(first) + Decimal(second)
    assert error.to_dict()["total"] in (45.0, 55.0)
    assert splits.publishing_entity_shares == []


def test_publishing_entities_reject_duplicates_and_unknown_entities(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            entity = await create_entity(session)
            await session.commit()

            with pytest.raises(ValidationError, match="Duplicate"):
                await split_ledger.set_publishing_entities(session, work.id, [
                    EntityShareEntry(entity.id, Decimal("0.25")),
                    EntityShareEntry(entity.id, Decimal("0.25")),
                ])

            with pytest.raises(ValidationError, match="Unknown publishing entities"):
                await split_ledger.set_publishing_entities(session, work.id, [
                    EntityShareEntry(entity.id, Decimal("0.25")),
                    EntityShareEntry(uuid4(), Decimal("0.25")),
                ])

    run_db(scenario)


def test_writer_share_must_total_fifty(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            updated = await split_ledger.set_publishing_splits(session, catalog.work.id, [
                ShareSplitEntry(catalog.writer.id, Decimal("0.30")),
                ShareSplitEntry(catalog.artist_publishing.id, Decimal("0.20")),
            ])
            await session.commit()
            by_id = {s.id: s.publishing_ownership for s in updated}

            with pytest.raises(ValidationError) as exc_info:
                await split_ledger.set_publishing_splits(session, catalog.work.id, [
                    ShareSplitEntry(catalog.writer.id, Decimal("0.35")),
                ])
            await session.rollback()

            splits = await split_ledger.get_splits(session, catalog.work.id)
            return by_id[catalog.writer.id], by_id[catalog.artist_publishing.id], exc_info.value, splits

    writer, artist, error, splits = run_db(scenario)

    assert writer == Decimal("0.3000")
    assert artist == Decimal("0.2000")
    assert error.total == Decimal("0.5500")
    assert splits.writer_total == Decimal("0.5000")


def test_writer_share_rejects_ineligible_role_and_foreign_share(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            other_work = await create_work(session, title="Elsewhere")
            stranger = await create_collaborator(session, "Dee", "Marsh", "dee@example.com")
            foreign = await create_share(session, other_work, stranger, CollaboratorRole.WRITER, publishing="0.5")
            await session.commit()

            with pytest.raises(ValidationError, match="not eligible"):
                await split_ledger.set_publishing_splits(session, catalog.work.id, [
                    ShareSplitEntry(catalog.producer.id, Decimal("0.10")),
                ])
            with pytest.raises(ValidationError, match="does not belong"):
                await split_ledger.set_publishing_splits(session, catalog.work.id, [
                    ShareSplitEntry(foreign.id, Decimal("0.10")),
                ])

    run_db(scenario)


def test_master_splits_cannot_exceed_hundred(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            await split_ledger.set_master_splits(session, catalog.work.id, [
                ShareSplitEntry(catalog.artist_master.id, Decimal("0.60")),
                ShareSplitEntry(catalog.producer.id, Decimal("0.40")),
            ])
            await session.commit()

            with pytest.raises(ValidationError) as exc_info:
                await split_ledger.set_master_splits(session, catalog.work.id, [
                    ShareSplitEntry(catalog.producer.id, Decimal("0.50")),
                ])
            await session.rollback()

            splits = await split_ledger.get_splits(session, catalog.work.id)
            return exc_info.value, splits

    error, splits = run_db(scenario)

    assert error.total == Decimal("1.1000")
    assert splits.master_total == Decimal("1.0000")


def test_label_share_is_stored_outside_master_total(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            await split_ledger.set_label_master_share(session, catalog.work.id, Decimal("0.40"))
            await session.commit()

            with pytest.raises(ValidationError):
                await split_ledger.set_label_master_share(session, catalog.work.id, Decimal("1.5"))
            await session.rollback()

            return await split_ledger.get_splits(session, catalog.work.id)

    splits = run_db(scenario)

    assert splits.work.label_master_share == Decimal("0.4000")
    assert splits.master_total == Decimal("0.6000")


def test_locked_facets_reject_writes(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            await split_ledger.lock(session, catalog.work.id, "publishing")
            await split_ledger.lock(session, catalog.work.id, "master")
            await session.commit()

            with pytest.raises(LockedError):
                await split_ledger.set_publishing_entities(session, catalog.work.id, [
                    EntityShareEntry(catalog.entity.id, Decimal("0.50")),
                ])
            with pytest.raises(LockedError):
                await split_ledger.set_publishing_splits(session, catalog.work.id, [
                    ShareSplitEntry(catalog.writer.id, Decimal("0.25")),
                ])
            with pytest.raises(LockedError):
                await split_ledger.set_master_splits(session, catalog.work.id, [
                    ShareSplitEntry(catalog.producer.id, Decimal("0.20")),
                ])
            with pytest.raises(LockedError):
                await split_ledger.set_label_master_share(session, catalog.work.id, Decimal("0.1"))

            return await split_ledger.get_splits(session, catalog.work.id)

    splits = run_db(scenario)

    assert splits.work.publishing_locked
    assert splits.work.master_locked
    assert splits.work.publishing_locked_at is not None


def test_master_lock_leaves_publishing_writable(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            await split_ledger.lock(session, catalog.work.id, "master")
            await split_ledger.set_publishing_splits(session, catalog.work.id, [
                ShareSplitEntry(catalog.writer.id, Decimal("0.40")),
                ShareSplitEntry(catalog.artist_publishing.id, Decimal("0.10")),
            ])
            await session.commit()
            return await split_ledger.get_splits(session, catalog.work.id)

    splits = run_db(scenario)

    assert splits.work.master_locked
    assert not splits.work.publishing_locked
    assert splits.writer_total == Decimal("0.5000")


def test_lock_is_idempotent(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            catalog = await seed_catalog(session, lock=False)
            await session.commit()

            first = await split_ledger.lock(session, catalog.work.id, "master")
            locked_at = first.master_locked_at
            await session.commit()
            second = await split_ledger.lock(session, catalog.work.id, "master")
            await session.commit()

            history = (await session.execute(
                select(SplitHistory).where(SplitHistory.split_type == SplitType.LOCK)
            )).scalars().all()
            return locked_at, second.master_locked_at, history

    locked_at, second_locked_at, history = run_db(scenario)

    assert locked_at == second_locked_at
    assert len(history) == 1


def test_publishing_lock_requires_publisher_share(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            work = await create_work(session)
            await session.commit()

            with pytest.raises(ValidationError, match="Cannot lock"):
                await split_ledger.lock(session, work.id, "publishing")
            with pytest.raises(ValidationError, match="Unknown facet"):
                await split_ledger.lock(session, work.id, "sync")

    run_db(scenario)


def test_missing_work_raises_not_found(run_db):
    async def scenario(session_maker):
        async with session_maker() as session:
            with pytest.raises(NotFoundError):
                await split_ledger.get_splits(session, uuid4())
            with pytest.raises(NotFoundError):
                await split_ledger.lock(session, uuid4(), "master")

    run_db(scenario)
