import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Union

from farmtrack.core.clock import Clock
from farmtrack.core.entities import TimeBlock, Worker
from farmtrack.db.repository import TimeBlockRepository

logger = logging.getLogger(__name__)

# Порог сверхурочной работы за неделю, часов
OVERTIME_THRESHOLD = 40.0
# Порог предупреждения о приближении к сверхурочным, часов
APPROACHING_OVERTIME_THRESHOLD = 35.0

DAYS_IN_WEEK = 7


@dataclass(frozen=True)
class WeeklySummary:
    """Сводка часов работника за неделю"""
    worker_id: int
    week_start: date
    daily_hours: Dict[date, float]
    total_hours: float

    @property
    def week_end(self) -> date:
        """Последний день недели (воскресенье)"""
        return self.week_start + timedelta(days=DAYS_IN_WEEK - 1)

    @property
    def regular_hours(self) -> float:
        return min(self.total_hours, OVERTIME_THRESHOLD)

    @property
    def overtime_hours(self) -> float:
        return max(self.total_hours - OVERTIME_THRESHOLD, 0.0)

    @property
    def is_overtime(self) -> bool:
        return WeeklyHoursCalculator.is_overtime(self.total_hours)

    @property
    def alert(self) -> str:
        if self.total_hours >= OVERTIME_THRESHOLD:
            return "overtime"
        if self.total_hours >= APPROACHING_OVERTIME_THRESHOLD:
            return "approaching"
        return ""


@dataclass(frozen=True)
class OvertimeReport:
    """Отчёт о сверхурочной работе за неделю"""
    week_start: date
    summaries: List[WeeklySummary] = field(default_factory=list)

    @property
    def total_overtime_hours(self) -> float:
        return sum(summary.overtime_hours for summary in self.summaries)


class DailyTimeAggregator:
    """Подсчёт отработанных часов за день"""

    def __init__(
        self,
        repository: Optional[TimeBlockRepository] = None,
        clock: Optional[Clock] = None
    ):
        self.repository = repository or TimeBlockRepository()
        self.clock = clock or Clock()

    @staticmethod
    def block_hours(block: TimeBlock, now: datetime) -> float:
        """
        Часы блока

        Для закрытого блока берутся сохранённые часы, для открытого
        считается время от прихода до текущего момента. Текущее значение
        открытого блока нигде не сохраняется.
        """
        return block.live_hours(now)

    @classmethod
    def sum_hours(cls, blocks: Iterable[TimeBlock], now: datetime) -> float:
        return sum((cls.block_hours(block, now) for block in blocks), 0.0)

    async def total_hours_for_day(self, worker: Worker, day: Union[date, datetime]) -> float:
        """
        Всего часов за день по всем блокам

        :param worker: Работник
        :param day: День
        :return: Сумма часов; 0, если блоков нет
        """
        blocks = await self.repository.fetch_for_day(worker.id, self.clock.local_date(day))
        return self.sum_hours(blocks, self.clock.now())

    async def daily_totals(self, worker: Worker, start: date, end: date) -> Dict[date, float]:
        """
        Часы по дням за период

        :param worker: Работник
        :param start: Первый день (включительно)
        :param end: Последний день (не включительно)
        :return: Словарь день -> часы, дни без блоков равны 0
        """
        now = self.clock.now()
        totals: Dict[date, float] = {}
        current = start
        while current < end:
            totals[current] = 0.0
            current += timedelta(days=1)

        blocks = await self.repository.fetch_between(worker.id, start, end)
        for block in blocks:
            totals[block.work_date] = totals.get(block.work_date, 0.0) + self.block_hours(block, now)
        return totals


class WeeklyHoursCalculator:
    """Границы недели и подсчёт часов за неделю (неделя начинается в понедельник)"""

    def __init__(
        self,
        repository: Optional[TimeBlockRepository] = None,
        clock: Optional[Clock] = None
    ):
        self.repository = repository or TimeBlockRepository()
        self.clock = clock or Clock()
        self.daily = DailyTimeAggregator(self.repository, self.clock)

    @staticmethod
    def week_start(reference: Union[date, datetime]) -> date:
        """
        Понедельник недели, в которую входит дата

        Для момента времени берётся его календарный день в собственном
        часовом поясе значения.
        """
        day = reference.date() if isinstance(reference, datetime) else reference
        return day - timedelta(days=day.weekday())

    @staticmethod
    def previous_week(current_start: date) -> date:
        return current_start - timedelta(days=DAYS_IN_WEEK)

    @staticmethod
    def next_week(current_start: date) -> date:
        return current_start + timedelta(days=DAYS_IN_WEEK)

    @staticmethod
    def is_overtime(total_hours: float) -> bool:
        return total_hours >= OVERTIME_THRESHOLD

    def _week_start_local(self, reference: Union[date, datetime]) -> date:
        return self.week_start(self.clock.local_date(reference))

    async def total_hours_for_week(self, worker: Worker, reference: Union[date, datetime]) -> float:
        """
        Всего часов за неделю

        :param worker: Работник
        :param reference: Любой день недели
        :return: Сумма закрытых блоков и текущих часов открытых блоков
        """
        start = self._week_start_local(reference)
        end = start + timedelta(days=DAYS_IN_WEEK)
        blocks = await self.repository.fetch_between(worker.id, start, end)
        return self.daily.sum_hours(blocks, self.clock.now())

    async def blocks_for_week(self, worker: Worker, reference: Union[date, datetime]) -> List[TimeBlock]:
        """Блоки работника за неделю по дням и номерам"""
        start = self._week_start_local(reference)
        return await self.repository.fetch_between(worker.id, start, start + timedelta(days=DAYS_IN_WEEK))

    async def weekly_summary(self, worker: Worker, reference: Union[date, datetime]) -> WeeklySummary:
        """
        Сводка за неделю с разбивкой по дням

        :param worker: Работник
        :param reference: Любой день недели
        :return: Сводка за неделю
        """
        start = self._week_start_local(reference)
        end = start + timedelta(days=DAYS_IN_WEEK)
        daily_hours = await self.daily.daily_totals(worker, start, end)
        return WeeklySummary(
            worker_id=worker.id,
            week_start=start,
            daily_hours=daily_hours,
            total_hours=sum(daily_hours.values(), 0.0)
        )

    async def overtime_report(
        self,
        workers: Iterable[Worker],
        reference: Union[date, datetime]
    ) -> OvertimeReport:
        """
        Работники со сверхурочными часами за неделю

        :param workers: Работники для проверки
        :param reference: Любой день недели
        :return: Отчёт о сверхурочной работе
        """
        summaries = []
        for worker in workers:
            summary = await self.weekly_summary(worker, reference)
            if summary.is_overtime:
                summaries.append(summary)

        report = OvertimeReport(week_start=self._week_start_local(reference), summaries=summaries)
        logger.info(
            f"Отчёт о сверхурочных за неделю с {report.week_start}: "
            f"{len(summaries)} работников, {report.total_overtime_hours:.2f} ч"
        )
        return report
