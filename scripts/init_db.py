import logging
import os

from tortoise import Tortoise, run_async

from farmtrack.db.config import TORTOISE_ORM
from farmtrack.db.models import Farm

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_db():
    """
    Инициализация базы данных

    Создаёт таблицы приложения и таблицу истории aerich. Дальнейшие
    изменения схемы выполняются командами aerich migrate / aerich upgrade.
    """
    try:
        await Tortoise.init(config=TORTOISE_ORM)
        logger.info("Подключение к базе данных установлено")

        await Tortoise.generate_schemas(safe=True)
        logger.info("Схемы базы данных созданы")

        farm_name = os.getenv("FARM_NAME")
        if farm_name:
            farm, created = await Farm.get_or_create(name=farm_name)
            if created:
                logger.info(f"Создана ферма {farm.name} (id={farm.id})")
    finally:
        await Tortoise.close_connections()


if __name__ == "__main__":
    run_async(init_db())
