from datetime import datetime
from typing import List, Optional

from aiogram.utils.markdown import hbold
from aiogram.utils.text_decorations import html_decoration

from farmtrack.core.aggregation import OvertimeReport, WeeklySummary
from farmtrack.core.clock import Clock
from farmtrack.core.entities import TimeBlock, Worker
from farmtrack.core.soil import NutrientType, SoilHealthInterpreter, SoilReport, Status

STATUS_ICONS = {
    Status.GOOD: "🟢",
    Status.WARNING: "🟡",
    Status.POOR: "🔴",
}


def format_hours(hours: float) -> str:
    """
    Часы в формате Ч:ММ

    :param hours: Количество часов
    :return: Строка вида 8:30
    """
    total_minutes = int(round(max(hours, 0.0) * 60))
    whole_hours, minutes = divmod(total_minutes, 60)
    return f"{whole_hours}:{minutes:02d}"


def format_time_block(block: TimeBlock, clock: Optional[Clock] = None) -> str:
    """
    Описание блока для отображения

    :param block: Блок рабочего времени
    :param clock: Часы для перевода времени в пояс фермы
    :return: Строка вида "Block 1: 07:00 - 11:30"
    """
    clock = clock or Clock()
    block_text = f"Block {block.block_number}"
    clock_in_text = clock.to_local(block.clock_in_time).strftime("%H:%M")

    if block.clock_out_time is not None:
        clock_out_text = clock.to_local(block.clock_out_time).strftime("%H:%M")
        return f"{block_text}: {clock_in_text} - {clock_out_text}"
    if block.is_active:
        return f"{block_text}: {clock_in_text} - Active"
    return f"{block_text}: {clock_in_text} - Not completed"


def format_duration(block: TimeBlock, now: datetime) -> str:
    return f"{block.live_hours(now):.1f} hours"


def status_icon(status: Status) -> str:
    return STATUS_ICONS.get(status, "⚪️")


WEEKDAYS = ["Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс"]

ALERT_TEXT = {
    "overtime": "🔴 Сверхурочная работа",
    "approaching": "🟡 Приближение к сверхурочным",
}


def format_day_blocks(blocks: List[TimeBlock], now: datetime, clock: Optional[Clock] = None) -> str:
    """
    Блоки за день с длительностью и итогом

    :param blocks: Блоки за день
    :param now: Текущий момент для незавершённых блоков
    :param clock: Часы фермы
    :return: Текст для сообщения
    """
    if not blocks:
        return "Сегодня отметок нет"

    lines = [f"{format_time_block(block, clock)} ({format_duration(block, now)})" for block in blocks]
    total = sum((block.live_hours(now) for block in blocks), 0.0)
    lines.extend(["", f"{hbold('Итого:')} {format_hours(total)}"])
    return "\n".join(lines)


def format_weekly_summary(summary: WeeklySummary, title: Optional[str] = None) -> str:
    """
    Сводка за неделю по дням

    :param summary: Сводка за неделю
    :param title: Заголовок (по умолчанию границы недели)
    :return: Текст для сообщения
    """
    title = title or (
        f"📅 Неделя {summary.week_start.strftime('%d.%m.%Y')} - "
        f"{summary.week_end.strftime('%d.%m.%Y')}"
    )
    lines = [hbold(title), ""]
    for day, hours in sorted(summary.daily_hours.items()):
        lines.append(f"{WEEKDAYS[day.weekday()]} {day.strftime('%d.%m')}: {format_hours(hours)}")

    lines.extend([
        "",
        f"{hbold('Итого:')} {format_hours(summary.total_hours)}",
        f"Обычные часы: {format_hours(summary.regular_hours)}",
        f"Сверхурочные: {format_hours(summary.overtime_hours)}",
    ])
    if summary.alert:
        lines.extend(["", ALERT_TEXT[summary.alert]])
    return "\n".join(lines)


def format_soil_report(report: SoilReport, field_name: Optional[str] = None) -> str:
    """
    Интерпретация анализа почвы для сообщения

    :param report: Отчёт по анализу
    :param field_name: Название поля
    :return: Текст для сообщения
    """
    test = report.soil_test
    heading = f"🧪 Анализ почвы от {test.test_date.strftime('%d.%m.%Y')}"
    if field_name:
        heading += f" ({field_name})"

    freshness = "актуальный" if report.is_recent else "устарел, рекомендуется повторить"
    levels = ", ".join(
        f"{nutrient.display_name} {value:g}{nutrient.unit} "
        f"({SoilHealthInterpreter.nutrient_level(value, nutrient)})"
        for nutrient, value in (
            (NutrientType.PHOSPHORUS, test.phosphorus_ppm),
            (NutrientType.POTASSIUM, test.potassium_ppm),
            (NutrientType.CEC, test.cec),
            (NutrientType.ORGANIC_MATTER, test.organic_matter),
        )
    )

    lines = [
        hbold(heading),
        f"Возраст: {report.age.display} ({freshness})",
        f"pH {test.ph:g}; {html_decoration.quote(levels)}",
    ]
    for card in report.cards:
        lines.extend([
            "",
            f"{status_icon(card.status)} {hbold(card.title)}",
            card.interpretation,
            f"💡 {card.recommendations}",
        ])
    if report.lab_notes:
        lines.extend(["", f"📝 {html_decoration.quote(report.lab_notes)}"])
    return "\n".join(lines)


def format_overtime_report(report: OvertimeReport, active_workers: List[Worker]) -> str:
    """
    Текст отчёта о сверхурочных

    :param report: Отчёт о сверхурочной работе
    :param active_workers: Работники для подстановки имён
    :return: Текст для сообщения
    """
    names = {worker.id: worker.name for worker in active_workers}
    lines = [hbold(f"⏱ Сверхурочные за неделю с {report.week_start.strftime('%d.%m.%Y')}"), ""]
    if not report.summaries:
        lines.append("Сверхурочной работы нет")
        return "\n".join(lines)

    for summary in report.summaries:
        name = html_decoration.quote(names.get(summary.worker_id, f"#{summary.worker_id}"))
        lines.append(
            f"🔴 {name}: {format_hours(summary.total_hours)} "
            f"(сверхурочно {format_hours(summary.overtime_hours)})"
        )
    lines.extend(["", f"{hbold('Всего сверхурочных:')} {format_hours(report.total_overtime_hours)}"])
    return "\n".join(lines)
