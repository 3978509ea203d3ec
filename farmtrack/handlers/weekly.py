from datetime import date

from aiogram import Dispatcher, F
from aiogram.filters import Command
from aiogram.types import (
    BufferedInputFile,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
)

from farmtrack.core.aggregation import WeeklyHoursCalculator
from farmtrack.core.clock import Clock
from farmtrack.db.repository import WorkerRepository
from farmtrack.handlers.start import resolve_worker
from farmtrack.utils.charts import chart_builder
from farmtrack.utils.formatting import format_weekly_summary


def create_week_keyboard(week_start: date) -> InlineKeyboardMarkup:
    """Клавиатура навигации по неделям"""
    iso = week_start.isoformat()
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="◀️", callback_data=f"week:prev:{iso}"),
            InlineKeyboardButton(text="📅 Сегодня", callback_data=f"week:today:{iso}"),
            InlineKeyboardButton(text="▶️", callback_data=f"week:next:{iso}"),
        ],
        [InlineKeyboardButton(text="📊 График", callback_data=f"week:chart:{iso}")],
    ])


async def week_handler(
    message: Message,
    workers: WorkerRepository,
    weekly_calculator: WeeklyHoursCalculator,
    clock: Clock
):
    """Обработчик команды /week"""
    worker = await resolve_worker(message, workers)
    if worker is None:
        return

    summary = await weekly_calculator.weekly_summary(worker, clock.today())
    await message.reply(
        format_weekly_summary(summary),
        reply_markup=create_week_keyboard(summary.week_start)
    )


async def week_callback_handler(
    callback_query: CallbackQuery,
    workers: WorkerRepository,
    weekly_calculator: WeeklyHoursCalculator,
    clock: Clock
):
    """Обработчик callback-запросов навигации по неделям"""
    _, action, shown = callback_query.data.split(":", 2)
    shown_week = date.fromisoformat(shown)

    worker = await workers.get_by_telegram_id(callback_query.from_user.id)
    if worker is None:
        await callback_query.answer("Сначала отправьте /start", show_alert=True)
        return

    if action == "prev":
        target = weekly_calculator.previous_week(shown_week)
    elif action == "next":
        target = weekly_calculator.next_week(shown_week)
    elif action == "today":
        target = weekly_calculator.week_start(clock.today())
    elif action == "chart":
        summary = await weekly_calculator.weekly_summary(worker, shown_week)
        png = chart_builder.weekly_hours_chart(summary)
        await callback_query.message.answer_photo(
            BufferedInputFile(png, filename=f"week_{shown}.png"),
            caption=f"📊 Часы за неделю с {shown_week.strftime('%d.%m.%Y')}"
        )
        await callback_query.answer()
        return
    else:
        await callback_query.answer()
        return

    if target == shown_week:
        # Текст не изменится, Telegram отклонит редактирование
        await callback_query.answer("Эта неделя уже открыта")
        return

    summary = await weekly_calculator.weekly_summary(worker, target)
    await callback_query.message.edit_text(
        format_weekly_summary(summary),
        reply_markup=create_week_keyboard(summary.week_start)
    )
    await callback_query.answer()


def register_handlers(dp: Dispatcher):
    """Регистрация обработчиков недельной сводки"""
    dp.message.register(week_handler, Command("week"))
    dp.callback_query.register(week_callback_handler, F.data.startswith("week:"))
