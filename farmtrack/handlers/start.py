from typing import Optional

from aiogram import Dispatcher
from aiogram.filters import Command
from aiogram.types import Message
from aiogram.utils.markdown import text, hbold

from farmtrack.core.entities import Worker
from farmtrack.db.repository import WorkerRepository


async def resolve_worker(message: Message, workers: WorkerRepository) -> Optional[Worker]:
    """
    Работник, связанный с автором сообщения

    Если работник не найден, автору отправляется подсказка про /start.

    :param message: Сообщение пользователя
    :param workers: Репозиторий работников
    :return: Работник или None
    """
    worker = await workers.get_by_telegram_id(message.from_user.id)
    if worker is None:
        await message.reply("Вы ещё не зарегистрированы. Отправьте /start, чтобы начать.")
    return worker


async def start_handler(message: Message, workers: WorkerRepository):
    """
    Обработчик команды /start
    """
    # Создаем или получаем работника
    worker, created = await workers.get_or_create_by_telegram_id(
        message.from_user.id,
        message.from_user.full_name
    )

    greeting = "👋 Добро пожаловать на ферму!" if created else f"👋 С возвращением, {worker.name}!"
    lines = [
        hbold(greeting),
        "",
        "🔹 Этот бот ведёт учёт рабочего времени и показывает результаты анализов почвы.",
        "🔹 Используйте /help для получения списка доступных команд.",
    ]
    if not worker.is_active:
        lines.extend(["", "⚠️ Ваша учётная запись отключена. Обратитесь к администратору."])
    else:
        lines.extend(["", "Начните смену командой /clockin"])

    await message.reply(text(*lines, sep="\n"))


async def help_handler(message: Message):
    """
    Обработчик команды /help
    """
    help_text = text(
        hbold("📋 Доступные команды:"),
        "",
        "🔸 /start - Начало работы с ботом",
        "🔸 /help - Показать это сообщение",
        "🔸 /clockin - Отметить приход",
        "🔸 /clockout - Отметить уход",
        "🔸 /today - Отметки за сегодня",
        "🔸 /week - Часы за неделю",
        "🔸 /export [csv|json|xlsx] - Выгрузка отметок за неделю",
        "🔸 /soil [номер поля] - Анализ почвы",
        sep="\n"
    )

    await message.reply(help_text)


def register_handlers(dp: Dispatcher):
    """
    Регистрация обработчиков
    """
    dp.message.register(start_handler, Command("start"))
    dp.message.register(help_handler, Command("help"))
