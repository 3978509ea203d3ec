import os
import logging

from tortoise import Tortoise, run_async

from farmtrack.core.clock import Clock
from farmtrack.db.config import TORTOISE_ORM
from farmtrack.db.models import Farm, Field, Lab, SoilTest, TimeBlock, Worker
from farmtrack.db.repository import TimeBlockRepository

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def check_db():
    """Проверка подключения к базе данных и целостности отметок"""
    try:
        await Tortoise.init(config=TORTOISE_ORM)
        logger.info("Подключение к базе данных установлено")

        conn = Tortoise.get_connection("default")
        await conn.execute_query("SELECT 1")
        logger.info("Тестовый запрос выполнен успешно")

        logger.info("Статистика таблиц:")
        for model in (Farm, Field, Lab, Worker, TimeBlock, SoilTest):
            logger.info(f"- {model._meta.db_table}: {await model.all().count()} строк")

        # У работника не может быть двух открытых блоков за один день
        open_blocks = await TimeBlock.filter(
            is_active=True,
            clock_out_time__isnull=True
        ).values("worker_id", "work_date", "id")
        seen = {}
        for row in open_blocks:
            seen.setdefault((row["worker_id"], row["work_date"]), []).append(row["id"])
        broken = {key: ids for key, ids in seen.items() if len(ids) > 1}

        if broken:
            for (worker_id, work_date), ids in broken.items():
                logger.error(
                    f"Работник {worker_id}, {work_date}: несколько открытых блоков {ids}"
                )
        else:
            logger.info("Открытые блоки в порядке")

        # Блоки прошлых дней уже не закрыть через /clockout
        today = Clock(os.getenv("FARM_TIMEZONE", "UTC")).today()
        stale = await TimeBlockRepository().stale_open_blocks(today)
        for block in stale:
            logger.warning(
                f"Работник {block.worker_id}: блок {block.block_number} за {block.work_date} "
                f"не закрыт (id {block.id})"
            )
        if stale:
            logger.warning(f"Незакрытых блоков за прошлые дни: {len(stale)}")
    finally:
        await Tortoise.close_connections()


if __name__ == "__main__":
    run_async(check_db())
