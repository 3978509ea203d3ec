from aiogram import Dispatcher
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from aiogram.utils.markdown import text, hbold
from aiogram.utils.text_decorations import html_decoration

from farmtrack.core.clock import Clock
from farmtrack.core.soil import soil_interpreter
from farmtrack.db.repository import FieldRepository, SoilTestRepository
from farmtrack.utils.formatting import format_soil_report, status_icon

# Сколько предыдущих анализов показывать под отчётом
HISTORY_SIZE = 3


async def list_fields(message: Message, fields: FieldRepository, soil_tests: SoilTestRepository):
    """Список полей с датой последнего анализа"""
    all_fields = await fields.list_all()
    if not all_fields:
        await message.reply("🌾 Поля ещё не добавлены")
        return

    lines = [hbold("🌾 Поля"), ""]
    for field in all_fields:
        latest = await soil_tests.latest_for_field(field.id)
        tested = latest.test_date.strftime("%d.%m.%Y") if latest else "нет анализов"
        lines.append(f"{field.id}. {html_decoration.quote(field.name)} - {tested}")
    lines.extend(["", "Отчёт по полю: /soil номер_поля"])

    await message.reply(text(*lines, sep="\n"))


async def soil_handler(
    message: Message,
    command: CommandObject,
    fields: FieldRepository,
    soil_tests: SoilTestRepository,
    clock: Clock
):
    """
    Обработчик команды /soil

    Без аргумента выводит список полей, с номером поля - интерпретацию
    последнего анализа почвы.
    """
    if not command.args:
        await list_fields(message, fields, soil_tests)
        return

    try:
        field_id = int(command.args.strip())
    except ValueError:
        await message.reply("⚠️ Укажите номер поля, например: /soil 1")
        return

    field = await fields.get(field_id)
    if field is None:
        await message.reply(f"⚠️ Поле {field_id} не найдено")
        return

    history = await soil_tests.list_for_field(field.id)
    if not history:
        await message.reply(f"🧪 Для поля {html_decoration.quote(field.name)} ещё нет анализов")
        return

    latest = history[-1]
    now = clock.now()
    report = soil_interpreter.interpret(latest, now)
    lines = [format_soil_report(report, field.name)]

    previous = history[-1 - HISTORY_SIZE:-1]
    if previous:
        lines.extend(["", hbold("Предыдущие анализы:")])
        for test in reversed(previous):
            lines.append(
                f"{status_icon(soil_interpreter.ph_status(test.ph))} "
                f"{test.test_date.strftime('%d.%m.%Y')}: pH {test.ph:g}, "
                f"OM {test.organic_matter:g}% "
                f"({soil_interpreter.test_freshness(test.test_date, now)})"
            )

    await message.reply("\n".join(lines))


def register_handlers(dp: Dispatcher):
    """Регистрация обработчиков анализов почвы"""
    dp.message.register(soil_handler, Command("soil"))
