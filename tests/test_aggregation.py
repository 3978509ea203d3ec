from datetime import date, datetime, time, timedelta, timezone

import pytest

from farmtrack.core.aggregation import (
    DailyTimeAggregator,
    OvertimeReport,
    WeeklyHoursCalculator,
    WeeklySummary,
)
from farmtrack.core.time_clock import TimeClockService
from farmtrack.db.models import TimeBlock

MONDAY = date(2025, 10, 13)


async def add_closed_block(repository, worker, work_date: date, number: int, hours: float):
    """Закрытый блок с началом в 07:00 UTC"""
    clock_in = datetime.combine(work_date, time(7, 0), tzinfo=timezone.utc)
    iso_year, iso_week, _ = work_date.isocalendar()
    block = await repository.create(worker.id, work_date, number, clock_in, iso_week, iso_year)
    return await repository.save_clock_out(block.id, clock_in + timedelta(hours=hours), hours)


@pytest.fixture
def daily(time_blocks, clock):
    return DailyTimeAggregator(time_blocks, clock)


@pytest.fixture
def weekly(time_blocks, clock):
    return WeeklyHoursCalculator(time_blocks, clock)


@pytest.mark.asyncio
async def test_total_hours_for_day_without_blocks(daily, worker):
    assert await daily.total_hours_for_day(worker, MONDAY) == 0


@pytest.mark.asyncio
async def test_open_block_counts_live_hours(daily, worker, time_blocks, clock):
    """Открытый блок учитывается по текущему времени и не сохраняется"""
    service = TimeClockService(time_blocks, clock)
    await service.clock_in(worker)

    clock.advance(hours=2, minutes=15)
    assert await daily.total_hours_for_day(worker, MONDAY) == pytest.approx(2.25)

    clock.advance(minutes=45)
    assert await daily.total_hours_for_day(worker, MONDAY) == pytest.approx(3.0)

    row = await TimeBlock.get(worker_id=worker.id)
    assert row.hours_worked == 0.0


@pytest.mark.asyncio
async def test_closed_and_open_blocks_are_combined(daily, worker, time_blocks, clock):
    await add_closed_block(time_blocks, worker, MONDAY, 1, 3.5)

    clock.set(datetime(2025, 10, 13, 12, 0, tzinfo=clock.tz))
    await TimeClockService(time_blocks, clock).clock_in(worker)
    clock.advance(hours=1)

    assert await daily.total_hours_for_day(worker, MONDAY) == pytest.approx(4.5)
    # Для момента времени берётся календарный день фермы
    assert await daily.total_hours_for_day(worker, clock.now()) == pytest.approx(4.5)


@pytest.mark.asyncio
async def test_daily_totals_are_zero_filled(daily, worker, time_blocks):
    await add_closed_block(time_blocks, worker, MONDAY, 1, 4.0)
    await add_closed_block(time_blocks, worker, MONDAY, 2, 2.0)
    await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=2), 1, 8.0)

    totals = await daily.daily_totals(worker, MONDAY, MONDAY + timedelta(days=3))

    assert totals == {
        MONDAY: pytest.approx(6.0),
        MONDAY + timedelta(days=1): 0.0,
        MONDAY + timedelta(days=2): pytest.approx(8.0),
    }


def test_week_start_is_monday():
    for offset in range(14):
        day = date(2025, 10, 6) + timedelta(days=offset)
        start = WeeklyHoursCalculator.week_start(day)
        assert start.weekday() == 0
        assert start <= day < start + timedelta(days=7)
        assert WeeklyHoursCalculator.week_start(start) == start


def test_week_start_for_sunday_and_datetime():
    assert WeeklyHoursCalculator.week_start(date(2025, 10, 19)) == MONDAY
    assert WeeklyHoursCalculator.week_start(datetime(2025, 10, 16, 23, 59)) == MONDAY
    assert WeeklyHoursCalculator.week_start(date(2025, 10, 20)) == date(2025, 10, 20)


def test_week_navigation_is_unbounded():
    assert WeeklyHoursCalculator.previous_week(MONDAY) == date(2025, 10, 6)
    assert WeeklyHoursCalculator.next_week(MONDAY) == date(2025, 10, 20)
    assert WeeklyHoursCalculator.next_week(date(2099, 12, 28)) == date(2100, 1, 4)


def test_is_overtime_threshold():
    assert WeeklyHoursCalculator.is_overtime(39.99) is False
    assert WeeklyHoursCalculator.is_overtime(40.0) is True
    assert WeeklyHoursCalculator.is_overtime(52.5) is True


@pytest.mark.asyncio
async def test_total_hours_for_week_excludes_other_weeks(weekly, worker, time_blocks):
    """В неделю входят только блоки с понедельника по воскресенье"""
    await add_closed_block(time_blocks, worker, MONDAY - timedelta(days=1), 1, 5.0)
    await add_closed_block(time_blocks, worker, MONDAY, 1, 8.0)
    await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=6), 1, 6.0)
    await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=7), 1, 7.0)

    assert await weekly.total_hours_for_week(worker, MONDAY + timedelta(days=3)) == pytest.approx(14.0)


@pytest.mark.asyncio
async def test_total_hours_for_week_ignores_creation_order(weekly, worker, other_worker, time_blocks):
    """Сумма за неделю не зависит от порядка записи блоков"""
    entries = [(4, 1, 3.25), (0, 1, 8.0), (2, 2, 1.5), (2, 1, 6.0)]
    for day_offset, number, hours in entries:
        await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=day_offset), number, hours)
    for day_offset, number, hours in reversed(entries):
        await add_closed_block(time_blocks, other_worker, MONDAY + timedelta(days=day_offset), number, hours)

    first = await weekly.total_hours_for_week(worker, MONDAY)
    second = await weekly.total_hours_for_week(other_worker, MONDAY)
    assert first == pytest.approx(18.75)
    assert second == pytest.approx(first)


@pytest.mark.asyncio
async def test_total_hours_for_week_includes_open_block(weekly, worker, time_blocks, clock):
    await add_closed_block(time_blocks, worker, date(2025, 10, 10), 1, 8.0)
    await add_closed_block(time_blocks, worker, MONDAY, 1, 0.5)

    clock.set(datetime(2025, 10, 14, 7, 0, tzinfo=clock.tz))
    await TimeClockService(time_blocks, clock).clock_in(worker)
    clock.advance(hours=3)

    assert await weekly.total_hours_for_week(worker, clock.now()) == pytest.approx(3.5)


@pytest.mark.asyncio
async def test_weekly_summary(weekly, worker, time_blocks):
    for day_offset in range(5):
        await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=day_offset), 1, 8.5)

    summary = await weekly.weekly_summary(worker, date(2025, 10, 17))

    assert summary.week_start == MONDAY
    assert summary.week_end == date(2025, 10, 19)
    assert len(summary.daily_hours) == 7
    assert summary.daily_hours[date(2025, 10, 18)] == 0.0
    assert summary.total_hours == pytest.approx(42.5)
    assert summary.regular_hours == pytest.approx(40.0)
    assert summary.overtime_hours == pytest.approx(2.5)
    assert summary.is_overtime
    assert summary.alert == "overtime"


def test_weekly_summary_alerts():
    def summary(total):
        return WeeklySummary(worker_id=1, week_start=MONDAY, daily_hours={}, total_hours=total)

    assert summary(20.0).alert == ""
    assert summary(35.0).alert == "approaching"
    assert summary(39.99).alert == "approaching"
    assert summary(40.0).alert == "overtime"
    assert summary(30.0).overtime_hours == 0.0


@pytest.mark.asyncio
async def test_blocks_for_week(weekly, worker, time_blocks):
    await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=1), 1, 2.0)
    await add_closed_block(time_blocks, worker, MONDAY, 2, 3.0)
    await add_closed_block(time_blocks, worker, MONDAY, 1, 4.0)
    await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=7), 1, 1.0)

    blocks = await weekly.blocks_for_week(worker, MONDAY)
    assert [(block.work_date, block.block_number) for block in blocks] == [
        (MONDAY, 1),
        (MONDAY, 2),
        (MONDAY + timedelta(days=1), 1),
    ]


@pytest.mark.asyncio
async def test_overtime_report(weekly, worker, other_worker, time_blocks):
    for day_offset in range(5):
        await add_closed_block(time_blocks, worker, MONDAY + timedelta(days=day_offset), 1, 9.0)
        await add_closed_block(time_blocks, other_worker, MONDAY + timedelta(days=day_offset), 1, 6.0)

    report = await weekly.overtime_report([worker, other_worker], MONDAY)

    assert isinstance(report, OvertimeReport)
    assert report.week_start == MONDAY
    assert [summary.worker_id for summary in report.summaries] == [worker.id]
    assert report.total_overtime_hours == pytest.approx(5.0)
