from aiogram import Dispatcher
from aiogram.filters import Command
from aiogram.types import Message
from aiogram.utils.markdown import text, hbold

from farmtrack.core.aggregation import DailyTimeAggregator
from farmtrack.core.clock import Clock
from farmtrack.core.errors import InvalidWorker, NoOpenBlock
from farmtrack.core.time_clock import TimeClockService
from farmtrack.db.repository import WorkerRepository
from farmtrack.handlers.start import resolve_worker
from farmtrack.utils.formatting import format_day_blocks, format_hours
from farmtrack.utils.logger import log_manager


async def clockin_handler(
    message: Message,
    workers: WorkerRepository,
    time_clock: TimeClockService
):
    """
    Обработчик команды /clockin
    """
    worker = await resolve_worker(message, workers)
    if worker is None:
        return

    try:
        result = await time_clock.start_block(worker)
    except InvalidWorker:
        await message.reply("⚠️ Ваша учётная запись отключена. Обратитесь к администратору.")
        return

    block = result.block
    started = time_clock.clock.to_local(block.clock_in_time).strftime("%H:%M")
    if not result.created:
        await message.reply(
            text(
                hbold(f"ℹ️ Вы уже на смене, блок {block.block_number}"),
                f"🕒 Приход: {started}",
                "",
                "Чтобы завершить блок, отправьте /clockout",
                sep="\n"
            )
        )
        return

    await log_manager.log_clock_event(worker.id, "clock_in", block.block_number, block.clock_in_time)
    await message.reply(
        text(
            hbold(f"✅ Смена начата, блок {block.block_number}"),
            f"🕒 Приход: {started}",
            "",
            "Не забудьте отметить уход командой /clockout",
            sep="\n"
        )
    )


async def clockout_handler(
    message: Message,
    workers: WorkerRepository,
    time_clock: TimeClockService,
    daily_aggregator: DailyTimeAggregator
):
    """
    Обработчик команды /clockout
    """
    worker = await resolve_worker(message, workers)
    if worker is None:
        return

    try:
        block = await time_clock.clock_out(worker)
    except NoOpenBlock:
        await message.reply("ℹ️ У вас нет открытой смены за сегодня. Начните её командой /clockin")
        return

    await log_manager.log_clock_event(worker.id, "clock_out", block.block_number, block.clock_out_time)

    day_total = await daily_aggregator.total_hours_for_day(worker, block.work_date)
    await message.reply(
        text(
            hbold(f"👋 Блок {block.block_number} завершён"),
            f"⌛️ Отработано: {format_hours(block.hours_worked)}",
            f"📊 Всего за день: {format_hours(day_total)}",
            sep="\n"
        )
    )


async def today_handler(
    message: Message,
    workers: WorkerRepository,
    time_clock: TimeClockService,
    clock: Clock
):
    """
    Обработчик команды /today
    """
    worker = await resolve_worker(message, workers)
    if worker is None:
        return

    blocks = await time_clock.get_time_blocks(worker)
    await message.reply(
        text(
            hbold(f"📋 Отметки за {clock.today().strftime('%d.%m.%Y')}"),
            "",
            format_day_blocks(blocks, clock.now(), clock),
            sep="\n"
        )
    )


def register_handlers(dp: Dispatcher):
    """Регистрация обработчиков отметок"""
    dp.message.register(clockin_handler, Command("clockin"))
    dp.message.register(clockout_handler, Command("clockout"))
    dp.message.register(today_handler, Command("today"))
