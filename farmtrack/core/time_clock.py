import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from farmtrack.core.clock import Clock
from farmtrack.core.entities import TimeBlock, Worker
from farmtrack.core.errors import AmbiguousOpenState, InvalidWorker, NoOpenBlock
from farmtrack.db.repository import TimeBlockRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClockInResult:
    """Открытый блок и признак того, что он создан этой отметкой"""
    block: TimeBlock
    created: bool


class TimeClockService:
    """
    Отметки прихода и ухода работников

    Работник может отмечаться несколько раз за день: каждая пара
    приход/уход образует отдельный блок с номером 1, 2, 3...
    Одновременно у работника открыт не более одного блока за день.
    Все изменения блоков одного работника выполняются под его блокировкой.
    """

    def __init__(
        self,
        repository: Optional[TimeBlockRepository] = None,
        clock: Optional[Clock] = None
    ):
        self.repository = repository or TimeBlockRepository()
        self.clock = clock or Clock()
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _day(self, day: Optional[Union[date, datetime]]) -> date:
        if day is None:
            return self.clock.today()
        return self.clock.local_date(day)

    async def _single_open_block(self, worker_id: int, day: date) -> Optional[TimeBlock]:
        open_blocks = await self.repository.fetch_open(worker_id, day)
        if len(open_blocks) > 1:
            logger.error(
                f"Нарушена целостность данных: у работника {worker_id} "
                f"{len(open_blocks)} открытых блоков за {day}"
            )
            raise AmbiguousOpenState(worker_id, [block.id for block in open_blocks])
        return open_blocks[0] if open_blocks else None

    async def clock_in(self, worker: Worker) -> TimeBlock:
        """
        Отметка прихода

        Если у работника уже есть открытый блок за сегодня, он возвращается
        без изменений, второй блок не создаётся.

        :param worker: Работник
        :return: Открытый блок
        """
        return (await self.start_block(worker)).block

    async def start_block(self, worker: Worker) -> ClockInResult:
        """
        Отметка прихода с признаком нового блока

        :param worker: Работник
        :return: Открытый блок; created=False, если работник уже на смене
        :raises InvalidWorker: Если работник отключён
        """
        if not worker.is_active:
            raise InvalidWorker(worker.id)

        async with self._locks[worker.id]:
            now = self.clock.now()
            today = now.date()

            active = await self._single_open_block(worker.id, today)
            if active is not None:
                logger.info(
                    f"Работник {worker.id} уже на смене, блок {active.block_number} за {today}"
                )
                return ClockInResult(active, created=False)

            block_number = await self.repository.count_for_day(worker.id, today) + 1
            iso_year, iso_week, _ = now.isocalendar()

            block = await self.repository.create(
                worker_id=worker.id,
                work_date=today,
                block_number=block_number,
                clock_in_time=now,
                week_number=iso_week,
                year=iso_year
            )
            logger.info(
                f"Работник {worker.id} отметил приход: блок {block_number} за {today}"
            )
            return ClockInResult(block, created=True)

    async def clock_out(self, worker: Worker) -> TimeBlock:
        """
        Отметка ухода

        :param worker: Работник
        :return: Закрытый блок
        :raises NoOpenBlock: Если за сегодня нет открытого блока
        """
        async with self._locks[worker.id]:
            now = self.clock.now()
            today = now.date()

            active = await self._single_open_block(worker.id, today)
            if active is None:
                raise NoOpenBlock(worker.id)

            hours_worked = max(0.0, (now - active.clock_in_time).total_seconds() / 3600.0)
            block = await self.repository.save_clock_out(active.id, now, hours_worked)
            logger.info(
                f"Работник {worker.id} отметил уход: блок {block.block_number}, "
                f"{hours_worked:.2f} ч"
            )
            return block

    async def get_time_blocks(
        self,
        worker: Worker,
        day: Optional[Union[date, datetime]] = None
    ) -> List[TimeBlock]:
        """Блоки работника за день по возрастанию номера"""
        return await self.repository.fetch_for_day(worker.id, self._day(day))

    async def active_block(
        self,
        worker: Worker,
        day: Optional[Union[date, datetime]] = None
    ) -> Optional[TimeBlock]:
        return await self._single_open_block(worker.id, self._day(day))

    async def is_clocked_in(
        self,
        worker: Worker,
        day: Optional[Union[date, datetime]] = None
    ) -> bool:
        blocks = await self.repository.fetch_open(worker.id, self._day(day))
        return len(blocks) > 0
