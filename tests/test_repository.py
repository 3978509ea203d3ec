from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from tortoise import fields
from tortoise.exceptions import IntegrityError, OperationalError

from farmtrack.core.errors import PersistenceFailure
from farmtrack.db import models
from farmtrack.utils.validators import FieldInput, SoilTestDraft, WorkerDraft

CLOCK_IN = datetime(2025, 10, 13, 7, 0, tzinfo=timezone.utc)


def soil_draft(test_date: date, **overrides) -> SoilTestDraft:
    values = dict(
        test_date=test_date,
        ph=6.5,
        organic_matter=3.2,
        phosphorus_ppm=22,
        potassium_ppm=140,
        cec=11
    )
    values.update(overrides)
    return SoilTestDraft(**values)


@pytest.mark.asyncio
async def test_time_block_roundtrip_is_timezone_aware(time_blocks, worker):
    block = await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)

    stored = (await time_blocks.fetch_for_day(worker.id, date(2025, 10, 13)))[0]
    assert stored.id == block.id
    assert stored.clock_in_time == CLOCK_IN
    assert stored.clock_in_time.tzinfo is not None
    assert stored.is_open


@pytest.mark.asyncio
async def test_save_clock_out_closes_block(time_blocks, worker):
    block = await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)
    closed = await time_blocks.save_clock_out(block.id, CLOCK_IN.replace(hour=9), 2.0)

    assert not closed.is_open
    assert await time_blocks.fetch_open(worker.id, date(2025, 10, 13)) == []
    assert await time_blocks.count_for_day(worker.id, date(2025, 10, 13)) == 1
    assert (await time_blocks.fetch_for_day(worker.id, date(2025, 10, 13)))[0].hours_worked == 2.0


@pytest.mark.asyncio
async def test_open_blocks_on(time_blocks, worker, other_worker):
    await time_blocks.create(other_worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)
    await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)
    await time_blocks.create(worker.id, date(2025, 10, 12), 1, CLOCK_IN, 41, 2025)

    blocks = await time_blocks.open_blocks_on(date(2025, 10, 13))
    assert sorted(block.worker_id for block in blocks) == sorted([worker.id, other_worker.id])


@pytest.mark.asyncio
async def test_stale_open_blocks(time_blocks, worker, other_worker):
    yesterday = datetime(2025, 10, 12, 7, 0, tzinfo=timezone.utc)
    forgotten = await time_blocks.create(worker.id, date(2025, 10, 12), 1, yesterday, 41, 2025)
    closed = await time_blocks.create(other_worker.id, date(2025, 10, 12), 1, yesterday, 41, 2025)
    await time_blocks.save_clock_out(closed.id, CLOCK_IN, 24.0)
    await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)

    stale = await time_blocks.stale_open_blocks(date(2025, 10, 13))
    assert [block.id for block in stale] == [forgotten.id]


def test_soil_test_lab_is_nulled_on_delete():
    """Удаление лаборатории не удаляет её анализы"""
    lab_field = models.SoilTest._meta.fields_map["lab"]
    assert lab_field.on_delete == fields.SET_NULL
    assert lab_field.null


@pytest.mark.asyncio
async def test_duplicate_block_number_is_persistence_failure(time_blocks, worker):
    """Номер блока уникален в пределах дня работника"""
    await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)

    with pytest.raises(PersistenceFailure) as exc_info:
        await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)
    assert isinstance(exc_info.value.original, IntegrityError)


@pytest.mark.asyncio
async def test_fetch_failure_is_wrapped(time_blocks, worker):
    with patch.object(
        models.TimeBlock, "filter",
        side_effect=OperationalError("database is locked")
    ):
        with pytest.raises(PersistenceFailure) as exc_info:
            await time_blocks.fetch_for_day(worker.id, date(2025, 10, 13))

    assert exc_info.value.operation == "fetch_time_blocks_for_day"
    assert "database is locked" in str(exc_info.value)


@pytest.mark.asyncio
async def test_worker_registration_by_telegram_id(database, workers):
    worker, created = await workers.get_or_create_by_telegram_id(555, "Carol")
    assert created
    assert worker.name == "Carol"
    assert worker.is_active

    again, created = await workers.get_or_create_by_telegram_id(555, "Someone Else")
    assert not created
    assert again.id == worker.id
    assert again.name == "Carol"

    assert (await workers.get_by_telegram_id(555)).id == worker.id
    assert await workers.get_by_telegram_id(556) is None


@pytest.mark.asyncio
async def test_deactivate_worker_keeps_history(workers, worker, time_blocks):
    await time_blocks.create(worker.id, date(2025, 10, 13), 1, CLOCK_IN, 42, 2025)

    deactivated = await workers.deactivate(worker.id)

    assert not deactivated.is_active
    assert worker.is_active  # снимок не изменяется
    assert await workers.list_active() == []
    assert len(await time_blocks.fetch_for_day(worker.id, date(2025, 10, 13))) == 1
    assert await workers.deactivate(9999) is None


@pytest.mark.asyncio
async def test_update_worker_from_draft(workers, worker):
    draft = WorkerDraft.from_snapshot(worker)
    draft.position = "Foreman"
    updated = await workers.update(worker.id, draft)

    assert updated.position == "Foreman"
    assert updated.name == worker.name
    assert (await workers.get(worker.id)).position == "Foreman"


@pytest.mark.asyncio
async def test_list_active_ordered_by_name(workers, worker, other_worker):
    await workers.create(WorkerDraft(name="Aaron"))
    assert [w.name for w in await workers.list_active()] == ["Aaron", "Alice", "Bob"]


@pytest.mark.asyncio
async def test_soil_tests_ordering(farm, fields, soil_tests):
    field = await fields.create(farm.id, FieldInput(name="North", acres=12.5))
    other = await fields.create(farm.id, FieldInput(name="East"))

    await soil_tests.create(field.id, soil_draft(date(2024, 5, 1), ph=6.1))
    await soil_tests.create(field.id, soil_draft(date(2022, 5, 1), ph=5.8))
    await soil_tests.create(field.id, soil_draft(date(2025, 5, 1), ph=6.6))
    await soil_tests.create(other.id, soil_draft(date(2025, 9, 1)))

    history = await soil_tests.list_for_field(field.id)
    assert [test.test_date for test in history] == [date(2022, 5, 1), date(2024, 5, 1), date(2025, 5, 1)]

    latest = await soil_tests.latest_for_field(field.id)
    assert latest.ph == 6.6
    assert await soil_tests.latest_for_field(9999) is None

    assert [f.name for f in await fields.list_all()] == ["East", "North"]
    assert (await fields.get(field.id)).acres == 12.5


@pytest.mark.asyncio
async def test_update_soil_test(farm, fields, soil_tests, database):
    lab = await models.Lab.create(name="Agri Lab")
    field = await fields.create(farm.id, FieldInput(name="South"))
    test = await soil_tests.create(field.id, soil_draft(date(2025, 5, 1)))

    draft = SoilTestDraft.from_snapshot(test)
    draft.notes = "  Re-tested  "
    draft.lab_id = lab.id
    updated = await soil_tests.update(test.id, SoilTestDraft(**draft.model_dump()))

    assert updated.notes == "Re-tested"
    assert updated.lab_id == lab.id
    assert updated.ph == test.ph


@pytest.mark.asyncio
async def test_create_worker_failure(workers, database):
    with patch.object(
        models.Worker, "create",
        AsyncMock(side_effect=OperationalError("no such table"))
    ):
        with pytest.raises(PersistenceFailure) as exc_info:
            await workers.create(WorkerDraft(name="Dave"))
    assert exc_info.value.operation == "create_worker"
