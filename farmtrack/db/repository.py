import functools
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from tortoise.exceptions import BaseORMException

from farmtrack.core import entities
from farmtrack.core.errors import PersistenceFailure
from farmtrack.db import models
from farmtrack.utils.validators import WorkerDraft, SoilTestDraft, FieldInput

logger = logging.getLogger(__name__)


def persistence_guard(operation: str):
    """
    Декоратор, превращающий ошибки ORM в PersistenceFailure

    :param operation: Название операции для сообщения об ошибке
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except BaseORMException as e:
                logger.error(f"Ошибка хранилища при операции {operation}: {e}")
                raise PersistenceFailure(operation, e) from e
        return wrapper
    return decorator


def worker_snapshot(row: models.Worker) -> entities.Worker:
    return entities.Worker(
        id=row.id,
        name=row.name,
        is_active=row.is_active,
        position=row.position,
        phone=row.phone,
        email=row.email,
        hire_date=row.hire_date,
        telegram_id=row.telegram_id
    )


def time_block_snapshot(row: models.TimeBlock) -> entities.TimeBlock:
    return entities.TimeBlock(
        id=row.id,
        worker_id=row.worker_id,
        work_date=row.work_date,
        block_number=row.block_number,
        clock_in_time=row.clock_in_time,
        clock_out_time=row.clock_out_time,
        hours_worked=row.hours_worked,
        is_active=row.is_active,
        week_number=row.week_number,
        year=row.year
    )


def field_snapshot(row: models.Field) -> entities.Field:
    return entities.Field(
        id=row.id,
        farm_id=row.farm_id,
        name=row.name,
        acres=row.acres
    )


def soil_test_snapshot(row: models.SoilTest) -> entities.SoilTest:
    return entities.SoilTest(
        id=row.id,
        field_id=row.field_id,
        test_date=row.test_date,
        ph=row.ph,
        organic_matter=row.organic_matter,
        phosphorus_ppm=row.phosphorus_ppm,
        potassium_ppm=row.potassium_ppm,
        cec=row.cec,
        lab_id=row.lab_id,
        notes=row.notes
    )


class TimeBlockRepository:
    """Хранилище блоков рабочего времени"""

    @persistence_guard("create_time_block")
    async def create(
        self,
        worker_id: int,
        work_date: date,
        block_number: int,
        clock_in_time: datetime,
        week_number: int,
        year: int
    ) -> entities.TimeBlock:
        """
        Создание открытого блока

        :param worker_id: ID работника
        :param work_date: Календарный день блока
        :param block_number: Порядковый номер блока за день
        :param clock_in_time: Время прихода
        :param week_number: Номер недели ISO
        :param year: Год недели ISO
        :return: Снимок созданного блока
        """
        row = await models.TimeBlock.create(
            worker_id=worker_id,
            work_date=work_date,
            block_number=block_number,
            clock_in_time=clock_in_time,
            is_active=True,
            week_number=week_number,
            year=year
        )
        return time_block_snapshot(row)

    @persistence_guard("fetch_time_blocks_for_day")
    async def fetch_for_day(self, worker_id: int, work_date: date) -> List[entities.TimeBlock]:
        rows = await models.TimeBlock.filter(
            worker_id=worker_id,
            work_date=work_date
        ).order_by("block_number")
        return [time_block_snapshot(row) for row in rows]

    @persistence_guard("fetch_time_blocks_between")
    async def fetch_between(self, worker_id: int, start: date, end: date) -> List[entities.TimeBlock]:
        """
        Блоки работника за период

        :param worker_id: ID работника
        :param start: Первый день периода (включительно)
        :param end: Конец периода (не включительно)
        :return: Блоки, упорядоченные по дню и номеру
        """
        rows = await models.TimeBlock.filter(
            worker_id=worker_id,
            work_date__gte=start,
            work_date__lt=end
        ).order_by("work_date", "block_number")
        return [time_block_snapshot(row) for row in rows]

    @persistence_guard("fetch_open_time_blocks")
    async def fetch_open(self, worker_id: int, work_date: date) -> List[entities.TimeBlock]:
        rows = await models.TimeBlock.filter(
            worker_id=worker_id,
            work_date=work_date,
            is_active=True
        ).order_by("block_number")
        return [time_block_snapshot(row) for row in rows]

    @persistence_guard("count_time_blocks")
    async def count_for_day(self, worker_id: int, work_date: date) -> int:
        return await models.TimeBlock.filter(
            worker_id=worker_id,
            work_date=work_date
        ).count()

    @persistence_guard("save_clock_out")
    async def save_clock_out(
        self,
        block_id: int,
        clock_out_time: datetime,
        hours_worked: float
    ) -> entities.TimeBlock:
        """
        Закрытие блока

        :param block_id: ID блока
        :param clock_out_time: Время ухода
        :param hours_worked: Отработанные часы
        :return: Снимок закрытого блока
        """
        row = await models.TimeBlock.get(id=block_id)
        row.clock_out_time = clock_out_time
        row.hours_worked = hours_worked
        row.is_active = False
        await row.save(update_fields=["clock_out_time", "hours_worked", "is_active", "updated_at"])
        return time_block_snapshot(row)

    @persistence_guard("fetch_open_blocks_on_day")
    async def open_blocks_on(self, work_date: date) -> List[entities.TimeBlock]:
        """Открытые блоки всех работников за день"""
        rows = await models.TimeBlock.filter(
            work_date=work_date,
            is_active=True
        ).order_by("worker_id", "block_number")
        return [time_block_snapshot(row) for row in rows]

    @persistence_guard("fetch_stale_open_blocks")
    async def stale_open_blocks(self, before: date) -> List[entities.TimeBlock]:
        """
        Открытые блоки за дни раньше before

        Такие блоки уже нельзя закрыть отметкой ухода, а их часы продолжают
        расти в недельных итогах.
        """
        rows = await models.TimeBlock.filter(
            work_date__lt=before,
            is_active=True,
            clock_out_time__isnull=True
        ).order_by("work_date", "worker_id", "block_number")
        return [time_block_snapshot(row) for row in rows]


class WorkerRepository:
    """Хранилище работников"""

    @persistence_guard("create_worker")
    async def create(self, draft: WorkerDraft) -> entities.Worker:
        row = await models.Worker.create(**draft.model_dump())
        return worker_snapshot(row)

    @persistence_guard("get_worker")
    async def get(self, worker_id: int) -> Optional[entities.Worker]:
        row = await models.Worker.get_or_none(id=worker_id)
        return worker_snapshot(row) if row else None

    @persistence_guard("get_worker_by_telegram_id")
    async def get_by_telegram_id(self, telegram_id: int) -> Optional[entities.Worker]:
        row = await models.Worker.get_or_none(telegram_id=telegram_id)
        return worker_snapshot(row) if row else None

    @persistence_guard("get_or_create_worker")
    async def get_or_create_by_telegram_id(
        self,
        telegram_id: int,
        name: str
    ) -> Tuple[entities.Worker, bool]:
        """
        Получение работника по Telegram ID или его регистрация

        :param telegram_id: ID пользователя Telegram
        :param name: Имя для нового работника
        :return: Снимок работника и признак создания
        """
        row, created = await models.Worker.get_or_create(
            telegram_id=telegram_id,
            defaults={'name': name}
        )
        return worker_snapshot(row), created

    @persistence_guard("list_active_workers")
    async def list_active(self) -> List[entities.Worker]:
        rows = await models.Worker.filter(is_active=True).order_by("name")
        return [worker_snapshot(row) for row in rows]

    @persistence_guard("update_worker")
    async def update(self, worker_id: int, draft: WorkerDraft) -> entities.Worker:
        row = await models.Worker.get(id=worker_id)
        for key, value in draft.model_dump().items():
            setattr(row, key, value)
        await row.save()
        return worker_snapshot(row)

    @persistence_guard("deactivate_worker")
    async def deactivate(self, worker_id: int) -> Optional[entities.Worker]:
        """Деактивация работника при увольнении (записи не удаляются)"""
        row = await models.Worker.get_or_none(id=worker_id)
        if row is None:
            return None
        row.is_active = False
        await row.save(update_fields=["is_active"])
        logger.info(f"Работник {worker_id} деактивирован")
        return worker_snapshot(row)


class FieldRepository:
    """Хранилище полей"""

    @persistence_guard("create_field")
    async def create(self, farm_id: int, data: FieldInput) -> entities.Field:
        row = await models.Field.create(farm_id=farm_id, **data.model_dump())
        return field_snapshot(row)

    @persistence_guard("get_field")
    async def get(self, field_id: int) -> Optional[entities.Field]:
        row = await models.Field.get_or_none(id=field_id)
        return field_snapshot(row) if row else None

    @persistence_guard("list_fields")
    async def list_all(self) -> List[entities.Field]:
        rows = await models.Field.all().order_by("name")
        return [field_snapshot(row) for row in rows]


class SoilTestRepository:
    """Хранилище анализов почвы"""

    @persistence_guard("create_soil_test")
    async def create(self, field_id: int, draft: SoilTestDraft) -> entities.SoilTest:
        row = await models.SoilTest.create(field_id=field_id, **draft.model_dump())
        return soil_test_snapshot(row)

    @persistence_guard("list_soil_tests")
    async def list_for_field(self, field_id: int) -> List[entities.SoilTest]:
        rows = await models.SoilTest.filter(field_id=field_id).order_by("test_date", "id")
        return [soil_test_snapshot(row) for row in rows]

    @persistence_guard("latest_soil_test")
    async def latest_for_field(self, field_id: int) -> Optional[entities.SoilTest]:
        row = await models.SoilTest.filter(field_id=field_id).order_by("-test_date", "-id").first()
        return soil_test_snapshot(row) if row else None

    @persistence_guard("update_soil_test")
    async def update(self, test_id: int, draft: SoilTestDraft) -> entities.SoilTest:
        row = await models.SoilTest.get(id=test_id)
        for key, value in draft.model_dump().items():
            setattr(row, key, value)
        await row.save()
        return soil_test_snapshot(row)
