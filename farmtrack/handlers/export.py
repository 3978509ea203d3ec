from aiogram import Dispatcher
from aiogram.filters import Command, CommandObject
from aiogram.types import FSInputFile, Message

from farmtrack.core.aggregation import WeeklyHoursCalculator
from farmtrack.core.clock import Clock
from farmtrack.db.repository import WorkerRepository
from farmtrack.handlers.start import resolve_worker
from farmtrack.utils.export import ExportManager


async def export_handler(
    message: Message,
    command: CommandObject,
    workers: WorkerRepository,
    weekly_calculator: WeeklyHoursCalculator,
    exporter: ExportManager,
    clock: Clock
):
    """
    Обработчик команды /export

    Формат передаётся аргументом: /export xlsx. По умолчанию csv.
    """
    worker = await resolve_worker(message, workers)
    if worker is None:
        return

    export_format = (command.args or "csv").strip().lower()
    if export_format not in exporter.formats:
        await message.reply(
            f"⚠️ Неизвестный формат. Доступны: {', '.join(exporter.formats)}"
        )
        return

    today = clock.today()
    blocks = await weekly_calculator.blocks_for_week(worker, today)
    file_path = await exporter.export_blocks(worker, blocks, export_format)
    if file_path is None:
        await message.reply("📭 За эту неделю нет отметок для выгрузки")
        return

    week_start = weekly_calculator.week_start(today)
    await message.answer_document(
        FSInputFile(file_path),
        caption=f"📎 Отметки за неделю с {week_start.strftime('%d.%m.%Y')}"
    )


def register_handlers(dp: Dispatcher):
    """Регистрация обработчика выгрузки"""
    dp.message.register(export_handler, Command("export"))
