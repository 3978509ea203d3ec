import logging

from aiogram import Dispatcher
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from aiogram.utils.markdown import text, hbold
from aiogram.utils.text_decorations import html_decoration

from farmtrack.core.aggregation import WeeklyHoursCalculator
from farmtrack.core.clock import Clock
from farmtrack.db.repository import WorkerRepository
from farmtrack.settings import Settings
from farmtrack.utils.formatting import format_overtime_report

logger = logging.getLogger(__name__)


def is_admin(message: Message, settings: Settings) -> bool:
    return message.from_user is not None and message.from_user.id == settings.admin_id


async def workers_handler(message: Message, workers: WorkerRepository, settings: Settings):
    """Обработчик команды /workers: список активных работников"""
    if not is_admin(message, settings):
        await message.reply("⛔️ Команда доступна только администратору")
        return

    active = await workers.list_active()
    if not active:
        await message.reply("👥 Активных работников нет")
        return

    lines = [hbold("👥 Активные работники"), ""]
    for worker in active:
        position = f" ({html_decoration.quote(worker.position)})" if worker.position else ""
        lines.append(f"{worker.id}. {html_decoration.quote(worker.name)}{position}")
    await message.reply(text(*lines, sep="\n"))


async def deactivate_handler(
    message: Message,
    command: CommandObject,
    workers: WorkerRepository,
    settings: Settings
):
    """
    Обработчик команды /deactivate

    Работник остаётся в базе вместе с отметками, но больше не может
    начинать смены.
    """
    if not is_admin(message, settings):
        await message.reply("⛔️ Команда доступна только администратору")
        return

    try:
        worker_id = int((command.args or "").strip())
    except ValueError:
        await message.reply("⚠️ Укажите номер работника, например: /deactivate 3")
        return

    worker = await workers.deactivate(worker_id)
    if worker is None:
        await message.reply(f"⚠️ Работник {worker_id} не найден")
        return

    logger.info(f"Администратор {message.from_user.id} отключил работника {worker_id}")
    await message.reply(f"✅ Работник {html_decoration.quote(worker.name)} отключён")


async def overtime_handler(
    message: Message,
    workers: WorkerRepository,
    weekly_calculator: WeeklyHoursCalculator,
    settings: Settings,
    clock: Clock
):
    """Обработчик команды /overtime: сверхурочные за текущую неделю"""
    if not is_admin(message, settings):
        await message.reply("⛔️ Команда доступна только администратору")
        return

    active_workers = await workers.list_active()
    report = await weekly_calculator.overtime_report(active_workers, clock.today())
    await message.reply(format_overtime_report(report, active_workers))


def register_handlers(dp: Dispatcher):
    """Регистрация административных обработчиков"""
    dp.message.register(workers_handler, Command("workers"))
    dp.message.register(deactivate_handler, Command("deactivate"))
    dp.message.register(overtime_handler, Command("overtime"))
